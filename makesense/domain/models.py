"""
Domain models and enums.

This module defines the core domain-level types used across the client:
- Connection state of the device link
- Telemetry events decoded from device notifications (readings and status text)
- Samples retained in the session history
- Running statistics and alarm snapshots handed to the display layer

These are immutable (frozen) dataclasses so they can be shared safely between
the BLE thread, the engine and the UI thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class ConnectionState(str, Enum):
    """
    Lifecycle state of the device link.

    Members
    -------
    DISCONNECTED : str
        No transport handle is held.
    CONNECTING : str
        A connect attempt is in flight.
    CONNECTED : str
        The status channel is subscribed and commands may be sent.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Reading:
    """
    One numeric measurement decoded from a status notification.

    Parameters
    ----------
    value
        Finite measured value in the device's native unit (uA).
    raw_text
        Decoded notification text the value was parsed from.
    """

    value: float
    raw_text: str


@dataclass(frozen=True)
class StatusMessage:
    """
    Non-numeric notification text (e.g. device-side zeroing progress).

    Parameters
    ----------
    text
        Trimmed message text.
    """

    text: str


TelemetryEvent = Union[Reading, StatusMessage]


@dataclass(frozen=True)
class Sample:
    """
    A reading retained in the session history.

    Parameters
    ----------
    timestamp
        Monotonic clock value (seconds) at ingestion. Used for ordering and
        relative chart time.
    value
        Measured value.
    wall_time
        Local wall-clock time at ingestion. Used for labels and export.
    """

    timestamp: float
    value: float
    wall_time: datetime


@dataclass(frozen=True)
class RunningStats:
    """
    Aggregates over every reading ingested since the last reset.

    ``minimum``/``maximum`` are None until the first reading arrives.
    ``count`` is not bounded by the history capacity.
    """

    minimum: Optional[float] = None
    maximum: Optional[float] = None
    count: int = 0

    def with_value(self, value: float) -> "RunningStats":
        """Return new stats tightened by ``value``."""
        lo = value if self.minimum is None or value < self.minimum else self.minimum
        hi = value if self.maximum is None or value > self.maximum else self.maximum
        return RunningStats(minimum=lo, maximum=hi, count=self.count + 1)


class AlarmPhase(str, Enum):
    """
    Phase of the threshold alarm.

    Members
    -------
    CLEAR : str
        No alarm is signalled.
    TRIGGERED : str
        The last evaluated reading exceeded the threshold.
    """

    CLEAR = "CLEAR"
    TRIGGERED = "TRIGGERED"


@dataclass(frozen=True)
class AlarmState:
    """
    Snapshot of the threshold alarm for UI queries.

    Parameters
    ----------
    enabled
        Whether readings are evaluated against the threshold.
    threshold
        Upper limit; a reading strictly greater than this triggers.
    triggered
        Whether the alarm is currently signalled.
    """

    enabled: bool
    threshold: float
    triggered: bool
