"""
Unit tests for makesense.core.reduction_engine.ReductionEngine.

These tests validate:
- bounded history (FIFO eviction, most recent kept) vs unbounded count
- running min/max/count
- edge-triggered alarm emissions, including the equality boundary
- pause / resume, reset, and alarm clearing on disconnect
- capacity changes and decimated display series
- telemetry routing from the bus (readings vs status text)

Approach
--------
The engine gets a deterministic clock and a fixed wall clock. Published events
are captured with a plain bus subscription per event type.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Tuple

import pytest

from makesense.core.config.display_config import DisplayConfig, YAxis
from makesense.core.reduction_engine import ReductionEngine
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
from makesense.domain.models import AlarmState, ConnectionState, Reading, StatusMessage
from makesense.runtime.event_bus import EventBus

T0 = datetime(2026, 1, 1, 10, 0, 0)
ENGINE_EVENTS = (
    ReadingReceived,
    StatusMessageReceived,
    StatsUpdated,
    DisplaySeriesUpdated,
    AlarmChanged,
    SessionReset,
    ConnectionChanged,
)


@dataclass
class Captured:
    """Events published on the bus, in order."""

    events: List[Any] = field(default_factory=list)

    def of(self, t: type) -> List[Any]:
        return [e for e in self.events if isinstance(e, t)]

    def types(self) -> List[type]:
        return [type(e) for e in self.events]


def _make(**cfg: Any) -> Tuple[ReductionEngine, DisplayConfig, EventBus, Captured]:
    bus = EventBus()
    config = DisplayConfig(**cfg)
    counter = itertools.count()
    engine = ReductionEngine(config=config, bus=bus, clock=lambda: float(next(counter)), wall_clock=lambda: T0)
    cap = Captured()
    for t in ENGINE_EVENTS:
        bus.subscribe(t, cap.events.append)
    return engine, config, bus, cap


def _values(engine: ReductionEngine) -> List[float]:
    return [s.value for s in engine.history()]


@pytest.mark.parametrize("n, capacity", [(0, 5), (3, 5), (5, 5), (12, 5), (1, 1), (40, 7)])
def test_history_holds_most_recent_min_n_c(n: int, capacity: int) -> None:
    """
    After N readings with capacity C the history should hold the last
    min(N, C) values in chronological order.
    """
    engine, config, bus, cap = _make(window_capacity=capacity)

    for i in range(n):
        engine.ingest(float(i))

    assert _values(engine) == [float(i) for i in range(max(0, n - capacity), n)]
    timestamps = [s.timestamp for s in engine.history()]
    assert timestamps == sorted(timestamps)


def test_count_is_not_bounded_by_capacity() -> None:
    """
    Stats count every reading since reset, not just the retained ones.
    """
    engine, config, bus, cap = _make(window_capacity=3)

    for v in [5.0, -1.0, 2.0, 7.0, 3.0]:
        engine.ingest(v)

    stats = engine.stats()
    assert stats.count == 5
    assert stats.minimum == -1.0
    assert stats.maximum == 7.0
    assert len(engine.history()) == 3


def test_stats_are_empty_before_first_reading() -> None:
    """
    A fresh engine should report no data.
    """
    engine, config, bus, cap = _make()

    stats = engine.stats()
    assert (stats.minimum, stats.maximum, stats.count) == (None, None, 0)
    assert engine.current_value is None
    assert engine.display_series() == ()
    assert engine.y_range() is None


def test_ingest_publishes_events_in_order() -> None:
    """
    One reading should publish ReadingReceived, StatsUpdated and
    DisplaySeriesUpdated, with AlarmChanged before the series on an edge.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)

    engine.ingest(0.5)
    assert cap.types() == [ReadingReceived, StatsUpdated, DisplaySeriesUpdated]

    cap.events.clear()
    engine.ingest(2.0)
    assert cap.types() == [ReadingReceived, StatsUpdated, AlarmChanged, DisplaySeriesUpdated]
    assert cap.of(StatsUpdated)[0] == StatsUpdated(minimum=0.5, maximum=2.0, count=2)
    assert engine.current_value == 2.0


def test_alarm_emits_only_on_edges() -> None:
    """
    Readings [0.5, 1.5, 1.2, 0.9] with threshold 1.0 should produce exactly two
    AlarmChanged events: engage at 1.5 and clear at 0.9.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)

    for v in [0.5, 1.5, 1.2, 0.9]:
        engine.ingest(v)

    assert cap.of(AlarmChanged) == [
        AlarmChanged(triggered=True, value=1.5, threshold=1.0),
        AlarmChanged(triggered=False, value=0.9, threshold=1.0),
    ]
    assert not engine.alarm_state().triggered


def test_alarm_equality_does_not_trigger_but_clears() -> None:
    """
    value == threshold is not above it: it neither engages the alarm nor keeps
    it engaged.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)

    engine.ingest(1.0)
    assert cap.of(AlarmChanged) == []

    engine.ingest(1.1)
    engine.ingest(1.0)
    assert [e.triggered for e in cap.of(AlarmChanged)] == [True, False]


def test_disabled_alarm_never_triggers() -> None:
    """
    With the alarm disabled no reading should engage it.
    """
    engine, config, bus, cap = _make(alarm_enabled=False, alarm_threshold=1.0)

    engine.ingest(100.0)

    assert cap.of(AlarmChanged) == []
    assert engine.alarm_state() == AlarmState(enabled=False, threshold=1.0, triggered=False)


def test_disabling_alarm_clears_it() -> None:
    """
    Turning the alarm off while engaged should publish a clear.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    engine.ingest(2.0)

    config.set_alarm_enabled(False)

    assert [e.triggered for e in cap.of(AlarmChanged)] == [True, False]
    assert cap.of(AlarmChanged)[-1].value is None
    assert not engine.alarm_state().triggered


def test_paused_engine_ignores_readings() -> None:
    """
    While paused, readings change nothing and publish nothing; after resume
    ingestion continues.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    engine.ingest(0.5)
    cap.events.clear()

    config.set_paused(True)
    assert engine.ingest(5.0) is False

    assert _values(engine) == [0.5]
    assert engine.stats().count == 1
    assert engine.current_value == 0.5
    assert not engine.alarm_state().triggered
    assert cap.events == []

    config.set_paused(False)
    assert engine.ingest(0.7) is True
    assert _values(engine) == [0.5, 0.7]


def test_pause_freezes_a_triggered_alarm() -> None:
    """
    A triggered alarm stays triggered while paused, even when a reading at or
    below the threshold arrives.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    engine.ingest(2.0)
    assert engine.alarm_state().triggered
    cap.events.clear()

    config.set_paused(True)
    assert engine.ingest(0.5) is False
    assert engine.ingest(1.0) is False

    assert engine.alarm_state().triggered
    assert cap.of(AlarmChanged) == []
    assert engine.current_value == 2.0

    config.set_paused(False)
    engine.ingest(0.5)
    assert [e.triggered for e in cap.of(AlarmChanged)] == [False]


def test_reset_clears_session_state() -> None:
    """
    reset() should empty history and stats, clear the alarm and current value,
    and publish SessionReset first.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    for v in [0.2, 3.0]:
        engine.ingest(v)
    cap.events.clear()

    engine.reset()

    assert engine.history() == ()
    stats = engine.stats()
    assert (stats.minimum, stats.maximum, stats.count) == (None, None, 0)
    assert engine.current_value is None
    assert not engine.alarm_state().triggered

    assert cap.types() == [SessionReset, StatsUpdated, AlarmChanged, DisplaySeriesUpdated]
    assert cap.of(DisplaySeriesUpdated)[0].points == ()
    assert cap.of(ConnectionChanged) == []


def test_reset_without_alarm_publishes_no_alarm_event() -> None:
    """
    A clear alarm should not produce an AlarmChanged on reset.
    """
    engine, config, bus, cap = _make()
    engine.ingest(1.0)
    cap.events.clear()

    engine.reset()

    assert cap.of(AlarmChanged) == []


def test_reading_during_reset_is_published_after_the_reset() -> None:
    """
    A reading arriving from another thread while reset() is publishing must
    not have its events overtaken by the reset's events.
    """
    engine, config, bus, cap = _make()
    engine.ingest(1.0)
    cap.events.clear()

    publish = engine._publish
    started = threading.Event()
    workers: List[threading.Thread] = []

    def interleaved(events: List[Any]) -> None:
        if not workers:

            def producer() -> None:
                started.set()
                engine.ingest(2.0)

            t = threading.Thread(target=producer)
            workers.append(t)
            t.start()
            assert started.wait(timeout=5)
            # Give the producer time to reach the bus lock.
            t.join(timeout=0.1)
        publish(events)

    engine._publish = interleaved  # type: ignore[method-assign]
    engine.reset()
    workers[0].join(timeout=5)
    assert not workers[0].is_alive()

    assert engine.stats().count == 1
    assert _values(engine) == [2.0]
    assert cap.of(StatsUpdated)[-1].count == 1
    assert [p.value for p in cap.of(DisplaySeriesUpdated)[-1].points] == [2.0]
    assert cap.types().index(SessionReset) < cap.types().index(ReadingReceived)


def test_disconnect_clears_alarm_but_keeps_data() -> None:
    """
    DISCONNECTED should clear a triggered alarm; history and stats survive.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    engine.ingest(0.5)
    engine.ingest(2.0)

    bus.publish(ConnectionChanged(state=ConnectionState.DISCONNECTED))

    assert not engine.alarm_state().triggered
    assert [e.triggered for e in cap.of(AlarmChanged)] == [True, False]
    assert _values(engine) == [0.5, 2.0]
    assert engine.stats().count == 2


def test_connecting_does_not_touch_alarm() -> None:
    """
    Only DISCONNECTED clears the alarm.
    """
    engine, config, bus, cap = _make(alarm_enabled=True, alarm_threshold=1.0)
    engine.ingest(2.0)

    bus.publish(ConnectionChanged(state=ConnectionState.CONNECTED, device_name="MakeSense"))

    assert engine.alarm_state().triggered


def test_shrinking_capacity_keeps_most_recent_samples() -> None:
    """
    Lowering the window should drop the oldest samples immediately and leave
    stats untouched; raising it keeps what is there.
    """
    engine, config, bus, cap = _make(window_capacity=10)
    for i in range(10):
        engine.ingest(float(i))
    cap.events.clear()

    config.set_window_capacity(4)
    assert _values(engine) == [6.0, 7.0, 8.0, 9.0]
    assert engine.stats().count == 10
    assert engine.stats().minimum == 0.0
    assert len(cap.of(DisplaySeriesUpdated)) == 1

    config.set_window_capacity(8)
    engine.ingest(10.0)
    assert _values(engine) == [6.0, 7.0, 8.0, 9.0, 10.0]


def test_display_series_decimates_to_budget() -> None:
    """
    250 samples with a 100 point budget should display 84 points: every third
    sample starting with the oldest.
    """
    engine, config, bus, cap = _make(window_capacity=300, target_points=100)
    for i in range(250):
        engine.ingest(float(i))

    points = engine.display_series()

    assert len(points) == 84
    assert [p.value for p in points] == [float(i) for i in range(0, 250, 3)]
    assert points[-1].value == 249.0


def test_display_series_is_full_history_within_budget() -> None:
    """
    No decimation when the history fits the budget.
    """
    engine, config, bus, cap = _make(window_capacity=50, target_points=100)
    for i in range(50):
        engine.ingest(float(i))

    assert engine.display_series() == engine.history()


def test_target_points_change_republishes_series() -> None:
    """
    Changing the point budget should publish a recomputed series.
    """
    engine, config, bus, cap = _make(window_capacity=100, target_points=100)
    for i in range(100):
        engine.ingest(float(i))
    cap.events.clear()

    config.set_target_points(10)

    series = cap.of(DisplaySeriesUpdated)
    assert len(series) == 1
    assert len(series[0].points) == 10
    assert len(engine.history()) == 100


def test_fixed_y_range_uses_configured_bounds() -> None:
    """
    FIXED mode should report the configured bounds regardless of data.
    """
    engine, config, bus, cap = _make(y_axis=YAxis.fixed(-1.0, 5.0))
    engine.ingest(100.0)

    assert engine.y_range() == (-1.0, 5.0)


def test_auto_y_range_pads_data_extent() -> None:
    """
    AUTO mode should fit the displayed data with a margin.
    """
    engine, config, bus, cap = _make()
    for v in [0.0, 10.0]:
        engine.ingest(v)

    lo, hi = engine.y_range()  # type: ignore[misc]
    assert lo == pytest.approx(-0.5)
    assert hi == pytest.approx(10.5)


def test_auto_y_range_for_flat_signal_is_not_degenerate() -> None:
    """
    A constant signal should still yield low < high.
    """
    engine, config, bus, cap = _make()
    engine.ingest(0.0)
    engine.ingest(0.0)

    lo, hi = engine.y_range()  # type: ignore[misc]
    assert lo < 0.0 < hi


def test_telemetry_reading_is_ingested_from_bus() -> None:
    """
    TelemetryReceived carrying a Reading should be ingested.
    """
    engine, config, bus, cap = _make()

    bus.publish(TelemetryReceived(seq=1, event=Reading(value=0.25, raw_text="0.25"), received_at=T0))

    assert _values(engine) == [0.25]
    assert cap.of(ReadingReceived) == [ReadingReceived(value=0.25)]


def test_status_message_is_forwarded_verbatim() -> None:
    """
    TelemetryReceived carrying status text should be republished unchanged
    and must not touch history or stats.
    """
    engine, config, bus, cap = _make()

    bus.publish(TelemetryReceived(seq=1, event=StatusMessage(text="正在调零"), received_at=T0))

    assert cap.of(StatusMessageReceived) == [StatusMessageReceived(text="正在调零")]
    assert engine.history() == ()
    assert engine.stats().count == 0


def test_status_message_is_forwarded_while_paused() -> None:
    """
    Pause freezes data, not device status text.
    """
    engine, config, bus, cap = _make(paused=True)

    bus.publish(TelemetryReceived(seq=1, event=StatusMessage(text="ready"), received_at=T0))

    assert cap.of(StatusMessageReceived) == [StatusMessageReceived(text="ready")]
