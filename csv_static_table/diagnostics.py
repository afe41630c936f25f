"""Diagnostic message sinks injected into table loading and pruning."""

from __future__ import annotations

import logging
from typing import Protocol

LOGGER_NAME = "csv_static_table"


class Diagnostics(Protocol):
    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingDiagnostics:
    """
    Forward messages to a ``logging.Logger``.

    Warnings and errors are also kept on the instance so callers can put them
    in a summary after the run.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.logger.error(message)


def configure_logging(*, quiet: bool = False, verbose: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logging.getLogger(LOGGER_NAME).setLevel(level)
