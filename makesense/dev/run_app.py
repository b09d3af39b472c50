from __future__ import annotations

import argparse
import sys

from PySide6.QtWidgets import QApplication

from makesense.bootstrap import build_app_system
from makesense.core.config.yaml_config import load_app_config
from makesense.logging_setup import setup_logging
from makesense.ui.main_window import MainWindow
from makesense.ui.theme import APP_QSS


def main() -> None:
    """
    Start the desktop UI.

    Usage:
        python -m makesense.dev.run_app [--config path/to/config.yaml] [--simulate]
    """
    parser = argparse.ArgumentParser(description="MakeSense current monitor")
    parser.add_argument("--config", default=None, help="path to config.yaml")
    parser.add_argument("--simulate", action="store_true", help="use a simulated device instead of BLE")
    args, qt_args = parser.parse_known_args()

    cfg = load_app_config(args.config)
    setup_logging(cfg.log.level)
    wiring = build_app_system(config=cfg, simulate=args.simulate)

    app = QApplication([sys.argv[0], *qt_args])
    app.setStyleSheet(APP_QSS)

    win = MainWindow(wiring)
    win.show()

    app.aboutToQuit.connect(wiring.controller.shutdown)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
