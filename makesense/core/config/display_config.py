from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from makesense.errors import ConfigError

DEFAULT_WINDOW_CAPACITY = 120  # 2 minutes at 1 Hz
DEFAULT_TARGET_POINTS = 300
DEFAULT_ALARM_THRESHOLD = 1.0


class YAxisMode(str, Enum):
    AUTO = "auto"
    FIXED = "fixed"


@dataclass(frozen=True)
class YAxis:
    """
    Y-axis scaling of the chart.

    Use :meth:`auto` or :meth:`fixed` rather than the constructor.
    """

    mode: YAxisMode = YAxisMode.AUTO
    low: Optional[float] = None
    high: Optional[float] = None

    @classmethod
    def auto(cls) -> "YAxis":
        return cls(YAxisMode.AUTO)

    @classmethod
    def fixed(cls, low: float, high: float) -> "YAxis":
        low, high = float(low), float(high)
        if not (math.isfinite(low) and math.isfinite(high)):
            raise ConfigError("Fixed y-axis bounds must be finite")
        if low >= high:
            raise ConfigError(f"Fixed y-axis requires low < high, got {low} >= {high}")
        return cls(YAxisMode.FIXED, low, high)

    @property
    def bounds(self) -> Optional[Tuple[float, float]]:
        """(low, high) in FIXED mode, None in AUTO mode."""
        if self.mode is YAxisMode.FIXED and self.low is not None and self.high is not None:
            return (self.low, self.high)
        return None


@dataclass(frozen=True)
class ConfigChange:
    """Name of the setting that changed; passed to listeners."""

    field: str


class DisplayConfig:
    """
    User-adjustable session settings.

    Holds the history window, chart point budget, y-axis mode, pause flag and
    alarm settings. Values only change through the setters, which validate
    their input and raise :class:`~makesense.errors.ConfigError` on bad values.
    Listeners registered with :meth:`add_listener` are called after every
    effective change (setting the current value again is not a change).

    Thread-safe: setters and getters share one lock; listeners run outside it.
    """

    def __init__(
        self,
        window_capacity: int = DEFAULT_WINDOW_CAPACITY,
        target_points: int = DEFAULT_TARGET_POINTS,
        y_axis: Optional[YAxis] = None,
        paused: bool = False,
        alarm_enabled: bool = False,
        alarm_threshold: float = DEFAULT_ALARM_THRESHOLD,
    ):
        self._lock = threading.RLock()
        self._listeners: List[Callable[[ConfigChange], None]] = []
        self._window_capacity = _positive_int("window_capacity", window_capacity)
        self._target_points = _positive_int("target_points", target_points)
        self._y_axis = y_axis or YAxis.auto()
        self._paused = bool(paused)
        self._alarm_enabled = bool(alarm_enabled)
        self._alarm_threshold = _finite("alarm_threshold", alarm_threshold)

    def add_listener(self, listener: Callable[[ConfigChange], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    # --- Getters ---
    @property
    def window_capacity(self) -> int:
        with self._lock:
            return self._window_capacity

    @property
    def target_points(self) -> int:
        with self._lock:
            return self._target_points

    @property
    def y_axis(self) -> YAxis:
        with self._lock:
            return self._y_axis

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def alarm_enabled(self) -> bool:
        with self._lock:
            return self._alarm_enabled

    @property
    def alarm_threshold(self) -> float:
        with self._lock:
            return self._alarm_threshold

    # --- Setters ---
    def set_window_capacity(self, capacity: int) -> None:
        self._update("window_capacity", _positive_int("window_capacity", capacity))

    def set_target_points(self, points: int) -> None:
        self._update("target_points", _positive_int("target_points", points))

    def set_y_axis(self, y_axis: YAxis) -> None:
        if not isinstance(y_axis, YAxis):
            raise ConfigError(f"Expected YAxis, got {type(y_axis).__name__}")
        self._update("y_axis", y_axis)

    def set_paused(self, paused: bool) -> None:
        self._update("paused", bool(paused))

    def set_alarm_enabled(self, enabled: bool) -> None:
        self._update("alarm_enabled", bool(enabled))

    def set_alarm_threshold(self, threshold: float) -> None:
        self._update("alarm_threshold", _finite("alarm_threshold", threshold))

    def _update(self, name: str, value: object) -> None:
        attr = f"_{name}"
        with self._lock:
            if getattr(self, attr) == value:
                return
            setattr(self, attr, value)
            listeners = list(self._listeners)

        change = ConfigChange(field=name)
        for listener in listeners:
            listener(change)


def _positive_int(name: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        n = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e
    if n != value or n < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return n


def _finite(name: str, value: object) -> float:
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(f):
        raise ConfigError(f"{name} must be finite, got {value!r}")
    return f
