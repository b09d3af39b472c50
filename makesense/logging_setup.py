from __future__ import annotations

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging to stdout once per process.

    ``level`` accepts a logging constant or a name such as ``"DEBUG"``.
    Unknown names fall back to INFO.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # bleak is chatty at DEBUG; keep it at WARNING unless asked otherwise.
    logging.getLogger("bleak").setLevel(max(level, logging.WARNING))
