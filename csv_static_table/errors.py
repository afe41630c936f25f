"""Exception types raised while loading and writing CSV tables."""

from __future__ import annotations

from pathlib import Path


class CsvTableError(Exception):
    """Base class for recoverable table errors."""


class TableIOError(CsvTableError):
    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class ShapeError(CsvTableError):
    def __init__(self, row_index: int, found: int, expected: int) -> None:
        super().__init__(
            f"Incorrect number of fields on row {row_index} - found {found}, expected {expected}"
        )
        self.row_index = row_index
        self.found = found
        self.expected = expected


class OverwriteRefused(CsvTableError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"File '{path}' already exists")
        self.path = Path(path)
