"""
MakeSense wire protocol.

Status channel (notify)
-----------------------
Each notification carries UTF-8 text. A payload whose trimmed text is a
finite decimal number is a reading in microamps; anything else is a
human-readable status string.

Command channel (write)
-----------------------
Single-byte commands, see :class:`Command`.
"""

from __future__ import annotations

import math
import re
from enum import IntEnum
from typing import Optional

from makesense.domain.models import Reading, StatusMessage, TelemetryEvent

# Plain decimal/scientific notation only; rejects "inf", "nan", hex and
# digit-group underscores that float() would otherwise accept.
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class Command(IntEnum):
    """Command codes accepted on the command characteristic."""

    TRIGGER_ZERO = 0x01
    STOP_SAMPLING = 0x02
    START_SAMPLING = 0x03


def parse_number(text: str) -> Optional[float]:
    """
    Strictly parse ``text`` as a finite decimal number.

    Returns
    -------
    float or None
        The value, or None if the text is not a number or overflows to
        infinity.
    """
    if not _NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def decode_payload(payload: bytes) -> TelemetryEvent:
    """
    Decode one status notification into a telemetry event.

    Never raises: invalid UTF-8 sequences are replaced, and text that does not
    parse as a number becomes a :class:`StatusMessage`.

    Parameters
    ----------
    payload
        Raw notification bytes.

    Returns
    -------
    Reading or StatusMessage
        Exactly one event per payload.
    """
    text = bytes(payload).decode("utf-8", errors="replace")
    trimmed = text.strip()

    value = parse_number(trimmed)
    if value is not None:
        return Reading(value=value, raw_text=text)
    return StatusMessage(text=trimmed)


def encode_command(code: int) -> bytes:
    """Encode a command code as the single byte written to the device."""
    if not 0 <= int(code) <= 0xFF:
        raise ValueError(f"Command code out of range: {code!r}")
    return bytes([int(code)])
