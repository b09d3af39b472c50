from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from makesense.core.config.display_config import (
    DEFAULT_ALARM_THRESHOLD,
    DEFAULT_TARGET_POINTS,
    DEFAULT_WINDOW_CAPACITY,
    DisplayConfig,
    YAxis,
)
from makesense.errors import ConfigError
from makesense.transport import client_config
from makesense.transport.base import DeviceFilter

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MAKESENSE_CONFIG"


@dataclass(frozen=True)
class DeviceConfig:
    """BLE device selection and timeouts used by the transport."""
    name: str = client_config.DEVICE_NAME
    service_uuid: str = client_config.SERVICE_UUID
    status_uuid: str = client_config.CHAR_STATUS_UUID
    command_uuid: str = client_config.CHAR_COMMAND_UUID
    raw_data_uuid: Optional[str] = client_config.CHAR_RAWDATA_UUID
    scan_timeout_s: float = client_config.SCAN_TIMEOUT_S
    connect_timeout_s: float = client_config.CONNECT_TIMEOUT_S

    def device_filter(self) -> DeviceFilter:
        return DeviceFilter(
            name=self.name,
            service_uuid=self.service_uuid,
            status_uuid=self.status_uuid,
            command_uuid=self.command_uuid,
            raw_data_uuid=self.raw_data_uuid,
        )


@dataclass(frozen=True)
class DisplayDefaults:
    """Initial chart/history settings."""
    window_capacity: int = DEFAULT_WINDOW_CAPACITY
    target_points: int = DEFAULT_TARGET_POINTS
    y_axis: YAxis = field(default_factory=YAxis.auto)


@dataclass(frozen=True)
class AlarmDefaults:
    """Initial alarm settings."""
    enabled: bool = False
    threshold: float = DEFAULT_ALARM_THRESHOLD


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    Every section is optional; missing keys fall back to the defaults above.
    """
    device: DeviceConfig = field(default_factory=DeviceConfig)
    display: DisplayDefaults = field(default_factory=DisplayDefaults)
    alarm: AlarmDefaults = field(default_factory=AlarmDefaults)
    log: LoggingConfig = field(default_factory=LoggingConfig)

    def build_display_config(self) -> DisplayConfig:
        """Create the mutable session settings seeded from this file."""
        return DisplayConfig(
            window_capacity=self.display.window_capacity,
            target_points=self.display.target_points,
            y_axis=self.display.y_axis,
            alarm_enabled=self.alarm.enabled,
            alarm_threshold=self.alarm.threshold,
        )


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError("config.yaml must contain a YAML mapping at the root")
    return data


def _resolve_default_config_path() -> Optional[Path]:
    """
    Resolve config.yaml location.

    Priority:
    1) MAKESENSE_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory

    Returns None when nothing is found.
    """
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    cwd_candidate = Path("config.yaml").resolve()
    if cwd_candidate.exists():
        return cwd_candidate
    return None


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _parse_y_axis(d: Dict[str, Any]) -> YAxis:
    mode = str(d.get("y_axis", "auto")).lower()
    if mode == "auto":
        return YAxis.auto()
    if mode == "fixed":
        try:
            return YAxis.fixed(float(d["y_min"]), float(d["y_max"]))
        except KeyError as e:
            raise ConfigError(f"display.y_axis=fixed requires {e.args[0]}") from e
    raise ConfigError(f"Unknown display.y_axis mode: {mode!r}")


def parse_app_config(raw: Dict[str, Any]) -> AppConfig:
    """
    Convert a YAML mapping into typed config objects.

    Raises
    ------
    ConfigError
        If a value has the wrong type or is out of range.
    """
    try:
        # ---- device ----
        d = _section(raw, "device")
        raw_uuid = d.get("raw_data_uuid", client_config.CHAR_RAWDATA_UUID)
        device = DeviceConfig(
            name=str(d.get("name", client_config.DEVICE_NAME)),
            service_uuid=str(d.get("service_uuid", client_config.SERVICE_UUID)),
            status_uuid=str(d.get("status_uuid", client_config.CHAR_STATUS_UUID)),
            command_uuid=str(d.get("command_uuid", client_config.CHAR_COMMAND_UUID)),
            raw_data_uuid=str(raw_uuid) if raw_uuid else None,
            scan_timeout_s=float(d.get("scan_timeout_s", client_config.SCAN_TIMEOUT_S)),
            connect_timeout_s=float(d.get("connect_timeout_s", client_config.CONNECT_TIMEOUT_S)),
        )

        # ---- display ----
        disp = _section(raw, "display")
        display = DisplayDefaults(
            window_capacity=int(disp.get("window_capacity", DEFAULT_WINDOW_CAPACITY)),
            target_points=int(disp.get("target_points", DEFAULT_TARGET_POINTS)),
            y_axis=_parse_y_axis(disp),
        )

        # ---- alarm ----
        a = _section(raw, "alarm")
        alarm = AlarmDefaults(
            enabled=bool(a.get("enabled", False)),
            threshold=float(a.get("threshold", DEFAULT_ALARM_THRESHOLD)),
        )

        # ---- logging ----
        lg = _section(raw, "logging")
        log_cfg = LoggingConfig(level=str(lg.get("level", "INFO")).upper())
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"Invalid configuration value: {e}") from e

    cfg = AppConfig(device=device, display=display, alarm=alarm, log=log_cfg)
    # Runs the setter validation once so bad values fail at load time.
    cfg.build_display_config()
    return cfg


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution and
        falls back to built-in defaults when no file is found.

    Raises
    ------
    FileNotFoundError
        If an explicit (or env-provided) config file does not exist.
    ConfigError
        If the file content is invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if cfg_path is None:
        logger.info("No config.yaml found, using defaults")
        return AppConfig()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    logger.info("Loading config from %s", cfg_path)
    return parse_app_config(_read_yaml(cfg_path))
