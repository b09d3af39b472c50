from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from makesense.core.reduction_engine import ReductionEngine
from makesense.domain.models import ConnectionState
from makesense.errors import ConnectAborted, InvalidCommandState, TransportError
from makesense.export.csv_export import default_export_name, export_history
from makesense.runtime.link import DeviceLink

logger = logging.getLogger(__name__)


@dataclass
class SessionController:
    """
    User-intent entry points for the UI.

    Responsibilities
    ----------------
    - Run the blocking ``connect()`` on a worker thread so the UI stays live.
    - Forward zero/clear/export actions to the link and the engine.

    Notes
    -----
    This controller contains orchestration logic only. Connection failures
    are already published on the bus by the link as ``LinkError``; here they
    are only logged.

    Parameters
    ----------
    link
        Device link.
    engine
        Reduction engine owning the session history.
    export_dir
        Directory CSV exports are written to.
    """

    link: DeviceLink
    engine: ReductionEngine
    export_dir: Path = field(default_factory=Path.cwd)

    _connect_thread: Optional[threading.Thread] = field(default=None, init=False, repr=False)

    def toggle_connection(self) -> Optional[threading.Thread]:
        """
        Connect when disconnected, otherwise disconnect.

        Returns
        -------
        threading.Thread or None
            The connect worker, if one was started.
        """
        if self.link.state is ConnectionState.DISCONNECTED:
            t = threading.Thread(target=self._connect, name="link-connect", daemon=True)
            self._connect_thread = t
            t.start()
            return t

        self.link.disconnect()
        return None

    def _connect(self) -> None:
        try:
            self.link.connect()
        except ConnectAborted:
            logger.info("Connect cancelled")
        except TransportError as e:
            logger.warning("Connect failed: %s", e)
        except Exception:
            logger.exception("Unexpected error while connecting")

    def trigger_zero(self) -> bool:
        """
        Send the zero-calibration command.

        Returns
        -------
        bool
            True if the command was written.
        """
        try:
            self.link.trigger_zero()
        except InvalidCommandState:
            logger.info("Zero ignored: not connected")
            return False
        except TransportError as e:
            logger.warning("Zero command failed: %s", e)
            return False
        return True

    def clear(self) -> None:
        self.engine.reset()

    def export_csv(self, path: Optional[Path] = None) -> Optional[Path]:
        """
        Write the full history to CSV.

        Returns
        -------
        Path or None
            Written file, or None when the history is empty.
        """
        samples = self.engine.history()
        if not samples:
            return None
        target = path or (self.export_dir / default_export_name())
        export_history(target, samples)
        logger.info("Exported %d samples to %s", len(samples), target)
        return target

    def shutdown(self) -> None:
        self.link.disconnect()
        t = self._connect_thread
        if t is not None and t.is_alive():
            t.join(timeout=2.0)
