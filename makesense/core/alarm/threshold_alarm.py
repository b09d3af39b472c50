"""
Edge-triggered threshold alarm.

A two-phase state machine::

    CLEAR --(enabled and value > threshold)--> TRIGGERED
    TRIGGERED --(value <= threshold)---------> CLEAR
    TRIGGERED --(reset / disable / link lost)-> CLEAR

Only transitions produce a result; repeated over-threshold readings while
TRIGGERED produce nothing. The machine has no side effects of its own: the
caller turns returned transitions into bus events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from makesense.domain.models import AlarmPhase


@dataclass(frozen=True)
class AlarmTransition:
    """
    Result of an alarm edge.

    Parameters
    ----------
    phase
        Phase entered.
    value
        Reading that caused the edge, None for forced clears.
    threshold
        Threshold compared against.
    """

    phase: AlarmPhase
    value: Optional[float]
    threshold: float

    @property
    def triggered(self) -> bool:
        return self.phase is AlarmPhase.TRIGGERED


class ThresholdAlarm:
    """
    Stateful edge detector. Not thread-safe; the engine serializes access.
    """

    def __init__(self) -> None:
        self._phase = AlarmPhase.CLEAR

    @property
    def phase(self) -> AlarmPhase:
        return self._phase

    @property
    def triggered(self) -> bool:
        return self._phase is AlarmPhase.TRIGGERED

    def evaluate(self, value: float, threshold: float, enabled: bool) -> Optional[AlarmTransition]:
        """
        Feed one reading.

        The comparison is strict: a value equal to the threshold does not
        trigger, and clears a triggered alarm.
        """
        if self._phase is AlarmPhase.CLEAR:
            if enabled and value > threshold:
                self._phase = AlarmPhase.TRIGGERED
                return AlarmTransition(AlarmPhase.TRIGGERED, value, threshold)
            return None

        if value <= threshold:
            self._phase = AlarmPhase.CLEAR
            return AlarmTransition(AlarmPhase.CLEAR, value, threshold)
        return None

    def force_clear(self, threshold: float) -> Optional[AlarmTransition]:
        """Clear a triggered alarm; returns None if already clear."""
        if self._phase is AlarmPhase.CLEAR:
            return None
        self._phase = AlarmPhase.CLEAR
        return AlarmTransition(AlarmPhase.CLEAR, None, threshold)
