from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from makesense.core.config.display_config import DisplayConfig
from makesense.core.config.yaml_config import AppConfig, load_app_config
from makesense.core.reduction_engine import ReductionEngine
from makesense.runtime.event_bus import EventBus
from makesense.runtime.link import DeviceLink
from makesense.services.controller import SessionController
from makesense.transport.base import Transport
from makesense.transport.simulated import SimulatedTransport


@dataclass(frozen=True)
class AppWiring:
    """Everything the UI layer needs to run the system."""
    config: AppConfig
    bus: EventBus
    display_config: DisplayConfig
    engine: ReductionEngine
    link: DeviceLink
    transport: Transport
    controller: SessionController


def build_transport(cfg: AppConfig, simulate: bool = False) -> Transport:
    if simulate:
        return SimulatedTransport()

    # Imported lazily so tests and --simulate runs work without a BLE stack.
    from makesense.transport.ble_transport import BleakTransport

    return BleakTransport(
        scan_timeout_s=cfg.device.scan_timeout_s,
        connect_timeout_s=cfg.device.connect_timeout_s,
    )


def build_app_system(
    config_path: Optional[str] = None,
    simulate: bool = False,
    transport: Optional[Transport] = None,
    export_dir: Optional[Path] = None,
    config: Optional[AppConfig] = None,
) -> AppWiring:
    cfg = config or load_app_config(config_path)

    # --- EVENT BUS ---
    bus = EventBus()

    # --- STATE ---
    display_config = cfg.build_display_config()
    engine = ReductionEngine(config=display_config, bus=bus)

    # --- LINK ---
    transport = transport or build_transport(cfg, simulate=simulate)
    link = DeviceLink(transport=transport, bus=bus, device_filter=cfg.device.device_filter())

    # --- CONTROLLER ---
    controller = SessionController(link=link, engine=engine, export_dir=export_dir or Path.cwd())

    return AppWiring(
        config=cfg,
        bus=bus,
        display_config=display_config,
        engine=engine,
        link=link,
        transport=transport,
        controller=controller,
    )
