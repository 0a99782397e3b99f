"""Console and error.log logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

ERROR_LOG_NAME = "error.log"
PACKAGE_LOGGER = "devflasher"

_COLORS = {
    logging.WARNING: typer.colors.YELLOW,
    logging.ERROR: typer.colors.RED,
    logging.CRITICAL: typer.colors.RED,
}


class ConsoleHandler(logging.Handler):
    """Writes records through Typer so warnings and errors are coloured."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            typer.secho(
                message,
                fg=_COLORS.get(record.levelno),
                bold=record.levelno >= logging.WARNING,
                err=record.levelno >= logging.ERROR,
            )
        except Exception:
            self.handleError(record)


def setup_logging(work_dir: Path, *, verbose: bool = False) -> Path:
    """Route devflasher logs to the console and errors to `<work_dir>/error.log`.

    Any error.log left by a previous run is removed. The file is only created
    once something is logged to it.
    """
    log_path = work_dir / ERROR_LOG_NAME
    log_path.unlink(missing_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    console = ConsoleHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    error_file = logging.FileHandler(log_path, mode="a", encoding="utf-8", delay=True)
    error_file.setLevel(logging.ERROR)
    error_file.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(error_file)

    return log_path
