"""
Launcher for frozen (PyInstaller) builds of MakeSense Monitor.

Equivalent to ``python -m makesense.dev.run_app``; command-line flags such as
``--simulate`` pass through unchanged. Startup errors are printed and the
console is kept open so they can be read.
"""

import runpy
import sys
import traceback


def main() -> None:
    try:
        runpy.run_module("makesense.dev.run_app", run_name="__main__")
    except SystemExit:
        raise
    except Exception:
        traceback.print_exc()
        if sys.stdin is not None and sys.stdin.isatty():
            input("\nStartup failed. Press Enter to exit...")
        sys.exit(1)


if __name__ == "__main__":
    main()
