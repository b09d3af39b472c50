"""
Presentation helpers for values and device status text.

Pure functions, kept free of Qt so they can be unit tested.
"""

from __future__ import annotations

from typing import Optional

# Firmware status strings are Chinese; the simulator speaks English.
_ZEROING_KEYWORDS = ("调零", "zeroing")
_READY_KEYWORDS = ("就绪", "完成", "ready", "complete")

PLACEHOLDER = "--"


def classify_status(message: str) -> Optional[str]:
    """
    Styling class for a status message.

    Returns
    -------
    str or None
        "zeroing", "ready" or None. Zeroing wins when both match.
    """
    text = message.lower()
    if any(k in text for k in _ZEROING_KEYWORDS):
        return "zeroing"
    if any(k in text for k in _READY_KEYWORDS):
        return "ready"
    return None


def format_value(value: Optional[float]) -> str:
    """Three decimals, or the placeholder for "no data"."""
    if value is None:
        return PLACEHOLDER
    return f"{value:.3f}"
