"""CSV export of the session history."""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from makesense.domain.models import Sample

CSV_HEADERS = ("Time", "Value(uA)")


def default_export_name(now: Optional[datetime] = None) -> str:
    """File name like ``makesense_2026-01-01T10-00-00.csv``."""
    ts = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return f"makesense_{ts}.csv"


def sample_rows(samples: Iterable[Sample]) -> Iterable[Sequence[str]]:
    for s in samples:
        yield (s.wall_time.strftime("%H:%M:%S"), repr(s.value))


def export_history(path: Path, samples: Sequence[Sample]) -> Path:
    """
    Write samples to ``path`` as CSV, creating parent directories.

    Raises
    ------
    ValueError
        If there is nothing to export.
    """
    if not samples:
        raise ValueError("No samples to export")

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(CSV_HEADERS)
        writer.writerows(sample_rows(samples))
    return path
