"""
Streaming reduction engine.

Consumes telemetry and connection events from the bus and maintains the
session view of the device:

- a bounded history of samples (FIFO, capacity from :class:`DisplayConfig`)
- running min/max/count over every reading since the last reset
- the edge-triggered threshold alarm
- a decimated, chart-ready copy of the history

Every change is announced on the bus for the display layer.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from makesense.core.alarm.threshold_alarm import AlarmTransition, ThresholdAlarm
from makesense.core.config.display_config import ConfigChange, DisplayConfig
from makesense.core.state.history import SampleHistory, decimate
from makesense.domain.events import (
    AlarmChanged,
    ConnectionChanged,
    DisplaySeriesUpdated,
    ReadingReceived,
    SessionReset,
    StatsUpdated,
    StatusMessageReceived,
    TelemetryReceived,
)
from makesense.domain.models import AlarmState, ConnectionState, Reading, RunningStats, Sample, StatusMessage
from makesense.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)


class ReductionEngine:
    """
    Owner of history, statistics and alarm state.

    Concurrency Model
    -----------------
    All state is guarded by a single re-entrant lock. Events produced by an
    operation are collected under the lock and published after it is
    released, so bus subscribers never run while the engine is locked.
    Each mutate-then-publish sequence runs inside
    :meth:`EventBus.serialized`, taking the bus lock before the engine lock
    as bus deliveries do. Events from a reset therefore never land after
    the events of a reading ingested later.

    Parameters
    ----------
    config
        Session settings; the engine listens for changes.
    bus
        Event bus to subscribe to and publish on.
    clock
        Monotonic time source for sample timestamps.
    wall_clock
        Wall-clock source for sample labels and export.
    """

    def __init__(
        self,
        config: DisplayConfig,
        bus: EventBus,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config
        self._bus = bus
        self._clock = clock
        self._wall_clock = wall_clock

        self._lock = threading.RLock()
        self._history = SampleHistory(config.window_capacity)
        self._stats = RunningStats()
        self._alarm = ThresholdAlarm()
        self._current_value: Optional[float] = None
        self._display: Optional[Tuple[Sample, ...]] = None

        bus.subscribe(TelemetryReceived, self._on_telemetry)
        bus.subscribe(ConnectionChanged, self._on_connection_changed)
        config.add_listener(self._on_config_change)

    @property
    def config(self) -> DisplayConfig:
        return self._config

    # --- Queries ---
    def history(self) -> Tuple[Sample, ...]:
        """Full history, oldest first. This is what export reads."""
        with self._lock:
            return self._history.snapshot()

    def stats(self) -> RunningStats:
        with self._lock:
            return self._stats

    def alarm_state(self) -> AlarmState:
        with self._lock:
            return AlarmState(
                enabled=self._config.alarm_enabled,
                threshold=self._config.alarm_threshold,
                triggered=self._alarm.triggered,
            )

    @property
    def current_value(self) -> Optional[float]:
        with self._lock:
            return self._current_value

    def display_series(self) -> Tuple[Sample, ...]:
        """Decimated history, recomputed only after history or budget changes."""
        with self._lock:
            if self._display is None:
                self._display = decimate(self._history.snapshot(), self._config.target_points)
            return self._display

    def y_range(self) -> Optional[Tuple[float, float]]:
        """
        Axis bounds for the chart.

        FIXED mode returns the configured bounds. AUTO mode fits the display
        series with a 5% margin, or None when there is no data.
        """
        fixed = self._config.y_axis.bounds
        if fixed is not None:
            return fixed

        points = self.display_series()
        if not points:
            return None
        lo = min(p.value for p in points)
        hi = max(p.value for p in points)
        pad = (hi - lo) * 0.05 if hi > lo else (abs(lo) * 0.1 or 1.0)
        return (lo - pad, hi + pad)

    # --- Operations ---
    def ingest(self, value: float) -> bool:
        """
        Ingest one reading.

        Returns
        -------
        bool
            False if the session is paused and the reading was dropped.
        """
        with self._bus.serialized():
            with self._lock:
                if self._config.paused:
                    return False

                self._history.append(Sample(timestamp=self._clock(), value=value, wall_time=self._wall_clock()))
                self._display = None
                self._stats = self._stats.with_value(value)
                self._current_value = value

                transition = self._alarm.evaluate(value, self._config.alarm_threshold, self._config.alarm_enabled)

                events: List[Any] = [ReadingReceived(value=value), self._stats_event()]
                if transition is not None:
                    events.append(self._alarm_event(transition))
                events.append(self._display_event())

            self._publish(events)
        return True

    def reset(self) -> None:
        """
        Clear history, statistics, the alarm and the current value.

        The connection state is not touched.
        """
        with self._bus.serialized():
            with self._lock:
                self._history.clear()
                self._display = None
                self._stats = RunningStats()
                self._current_value = None
                transition = self._alarm.force_clear(self._config.alarm_threshold)

                events: List[Any] = [SessionReset(), self._stats_event()]
                if transition is not None:
                    events.append(self._alarm_event(transition))
                events.append(self._display_event())

            logger.info("Session cleared")
            self._publish(events)

    # --- Bus handlers ---
    def _on_telemetry(self, ev: TelemetryReceived) -> None:
        if isinstance(ev.event, Reading):
            self.ingest(ev.event.value)
        elif isinstance(ev.event, StatusMessage):
            self._bus.publish(StatusMessageReceived(text=ev.event.text))

    def _on_connection_changed(self, ev: ConnectionChanged) -> None:
        if ev.state is not ConnectionState.DISCONNECTED:
            return
        self._clear_alarm("link lost")

    def _on_config_change(self, change: ConfigChange) -> None:
        if change.field == "window_capacity":
            self._resize(self._config.window_capacity)
        elif change.field in ("target_points", "y_axis"):
            with self._bus.serialized():
                with self._lock:
                    self._display = None
                    event = self._display_event()
                self._publish([event])
        elif change.field == "alarm_enabled" and not self._config.alarm_enabled:
            self._clear_alarm("alarm disabled")
        elif change.field == "paused":
            logger.info("Ingestion %s", "paused" if self._config.paused else "resumed")

    # --- Internals ---
    def _resize(self, capacity: int) -> None:
        with self._bus.serialized():
            with self._lock:
                self._history.resize(capacity)
                self._display = None
                event = self._display_event()
            logger.info("History window set to %d samples", capacity)
            self._publish([event])

    def _clear_alarm(self, reason: str) -> None:
        with self._bus.serialized():
            with self._lock:
                transition = self._alarm.force_clear(self._config.alarm_threshold)
                if transition is None:
                    return
                event = self._alarm_event(transition)
            logger.info("Alarm cleared (%s)", reason)
            self._publish([event])

    def _stats_event(self) -> StatsUpdated:
        return StatsUpdated(minimum=self._stats.minimum, maximum=self._stats.maximum, count=self._stats.count)

    def _alarm_event(self, transition: AlarmTransition) -> AlarmChanged:
        if transition.triggered:
            logger.warning("Alarm engaged: %s > %s", transition.value, transition.threshold)
        return AlarmChanged(triggered=transition.triggered, value=transition.value, threshold=transition.threshold)

    def _display_event(self) -> DisplaySeriesUpdated:
        return DisplaySeriesUpdated(points=self.display_series(), y_range=self.y_range())

    def _publish(self, events: List[Any]) -> None:
        for ev in events:
            self._bus.publish(ev)
