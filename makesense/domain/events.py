"""
Bus event domain models.

Every event published on the :class:`~makesense.runtime.event_bus.EventBus`
is one of the frozen dataclasses below. Subscribers register per event
class, so each class is also the routing key.

The link publishes:
- :class:`ConnectionChanged`, :class:`LinkError`, :class:`TelemetryReceived`

The reduction engine publishes:
- :class:`ReadingReceived`, :class:`StatusMessageReceived`,
  :class:`StatsUpdated`, :class:`DisplaySeriesUpdated`,
  :class:`AlarmChanged`, :class:`SessionReset`
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from makesense.domain.models import ConnectionState, Sample, TelemetryEvent


@dataclass(frozen=True)
class ConnectionChanged:
    """
    The link entered a new connection state.

    Parameters
    ----------
    state
        New connection state.
    device_name
        Advertised device name, set only for CONNECTED.
    """

    state: ConnectionState
    device_name: Optional[str] = None


@dataclass(frozen=True)
class LinkError:
    """A connect attempt failed; ``message`` is human-readable."""

    message: str


@dataclass(frozen=True)
class TelemetryReceived:
    """
    One decoded notification.

    Parameters
    ----------
    seq
        Arrival order, strictly increasing over the lifetime of the link.
    event
        Decoded reading or status message.
    received_at
        Wall-clock arrival time.
    """

    seq: int
    event: TelemetryEvent
    received_at: datetime


@dataclass(frozen=True)
class ReadingReceived:
    """A reading was ingested and is the new current value."""

    value: float


@dataclass(frozen=True)
class StatusMessageReceived:
    """Status text to show verbatim."""

    text: str


@dataclass(frozen=True)
class StatsUpdated:
    minimum: Optional[float]
    maximum: Optional[float]
    count: int


@dataclass(frozen=True)
class DisplaySeriesUpdated:
    """
    Decimated history for the chart.

    Parameters
    ----------
    points
        Chronological, decimated samples.
    y_range
        (low, high) axis bounds, or None when there is nothing to scale to.
    """

    points: Tuple[Sample, ...]
    y_range: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class AlarmChanged:
    """
    The threshold alarm crossed an edge.

    Parameters
    ----------
    triggered
        True when engaged, False when cleared.
    value
        Reading that caused the transition, None for clears caused by
        disconnect, reset or disabling the alarm.
    threshold
        Threshold in effect at the transition.
    """

    triggered: bool
    value: Optional[float]
    threshold: float


@dataclass(frozen=True)
class SessionReset:
    """History, stats, alarm and current value were cleared."""
