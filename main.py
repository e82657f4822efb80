from __future__ import annotations

import sys
import traceback

from areastamp.cli import LOGGER, main as cli_main


def _install_exception_logging() -> None:
    """Send uncaught exceptions through logging so they carry a timestamp."""

    def _log_uncaught_exception(exc_type, exc_value, exc_tb) -> None:
        message = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        LOGGER.error("uncaught exception\n%s", message.rstrip())
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _log_uncaught_exception


def main() -> None:
    _install_exception_logging()
    cli_main()


if __name__ == "__main__":
    main()
