"""
table.py - rectangular CSV table over a single owned buffer

Public API:
    table = CSVStaticTable.load("path/to/file.csv", LoadFlags.DEFAULT)
    table.field_name(0)
    table.cell(row_index, field_index)
    table.write("out.csv", overwrite=True)

Row 0 of the grid is always the header; every query that takes a row index
counts data rows only. Cells are ``FieldRef`` ranges into the table's
``Buffer`` and are decoded on access, so the table and its buffer live and
die together.
"""

from __future__ import annotations

import codecs
import io
import re
import sys
from pathlib import Path
from typing import IO, Iterator, Optional

import chardet
import pandas as pd

from csv_static_table import fs
from csv_static_table.diagnostics import Diagnostics, LoggingDiagnostics
from csv_static_table.errors import OverwriteRefused, ShapeError, TableIOError
from csv_static_table.flags import LoadFlags
from csv_static_table.tokenizer import Buffer, FieldRef, split_fields

UTF8_BOM = b"\xef\xbb\xbf"
ENCODING_SAMPLE_BYTES = 64 * 1024
HEADERLESS_FIELD_NAME = "name"
COMMENT_PREFIX = ord("#")

_NEEDS_QUOTING = re.compile(rb'[,"\r\n]')


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING & QUOTING
# ══════════════════════════════════════════════════════════════════════════════

def detect_encoding(raw: bytes) -> str:
    """
    Pick the codec used to decode cells.

    Strict UTF-8 wins when the bytes decode cleanly; otherwise chardet is
    consulted on a leading sample. ASCII is widened to UTF-8.
    """
    try:
        raw.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    detected = chardet.detect(raw[:ENCODING_SAMPLE_BYTES]).get("encoding")
    if not detected:
        return "utf-8"
    try:
        name = codecs.lookup(detected).name
    except LookupError:
        return "utf-8"
    return "utf-8" if name == "ascii" else name


def quote_field(value: bytes) -> bytes:
    """Quote a raw field if it holds a comma, quote or line break."""
    if _NEEDS_QUOTING.search(value) is None:
        return value
    return b'"' + value.replace(b'"', b'""') + b'"'


def _tokenize(buffer: Buffer, newline: str, diagnostics: Diagnostics) -> list[list[FieldRef]]:
    cells: list[list[FieldRef]] = []
    lines = buffer.cursor()
    while True:
        line = lines.next_line(newline)
        if line is None:
            break
        row, unterminated = split_fields(buffer, line)
        if unterminated:
            diagnostics.warning(f"Unterminated quoted field on row {len(cells)}")
        if cells and len(row) != len(cells[0]):
            raise ShapeError(len(cells), len(row), len(cells[0]))
        cells.append(row)
    return cells


# ══════════════════════════════════════════════════════════════════════════════
# TABLE
# ══════════════════════════════════════════════════════════════════════════════

class CSVStaticTable:
    def __init__(
        self,
        buffer: Buffer,
        cells: list[list[FieldRef]],
        *,
        encoding: str = "utf-8",
        bom: bool = False,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self._buffer: Optional[Buffer] = buffer
        self._cells = cells
        self.encoding = encoding
        self.bom = bom
        self.diagnostics = diagnostics or LoggingDiagnostics()

    # ── Loading ──────────────────────────────────────────────────────────────

    @classmethod
    def load(
        cls,
        path: Path | str,
        flags: LoadFlags | int = LoadFlags.DEFAULT,
        *,
        newline: str = "auto",
        encoding: str | None = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> "CSVStaticTable":
        diagnostics = diagnostics or LoggingDiagnostics()
        path = Path(path)
        diagnostics.info(f"Loading CSV '{path.name}'...")
        try:
            raw = fs.read_file_bytes(path)
        except TableIOError as exc:
            diagnostics.error(str(exc))
            raise
        return cls.from_bytes(
            raw,
            flags,
            newline=newline,
            encoding=encoding,
            diagnostics=diagnostics,
            source=str(path),
        )

    @classmethod
    def from_bytes(
        cls,
        raw: bytes,
        flags: LoadFlags | int = LoadFlags.DEFAULT,
        *,
        newline: str = "auto",
        encoding: str | None = None,
        diagnostics: Optional[Diagnostics] = None,
        source: str = "<bytes>",
    ) -> "CSVStaticTable":
        diagnostics = diagnostics or LoggingDiagnostics()
        if encoding is not None:
            try:
                codecs.lookup(encoding)
            except LookupError:
                raise ValueError(f"Unknown encoding: {encoding}") from None
        bom = raw.startswith(UTF8_BOM)
        buffer = Buffer(raw, skip=len(UTF8_BOM) if bom else 0)
        try:
            cells = _tokenize(buffer, newline, diagnostics)
            if not cells:
                raise TableIOError(f"No data read from '{source}'")
        except (ShapeError, TableIOError) as exc:
            diagnostics.error(str(exc))
            buffer.release()
            raise
        except ValueError:
            buffer.release()
            raise

        table = cls(
            buffer,
            cells,
            encoding=encoding or detect_encoding(raw),
            bom=bom,
            diagnostics=diagnostics,
        )
        try:
            table._apply_load_flags(LoadFlags(flags))
        except ShapeError as exc:
            diagnostics.error(str(exc))
            table.close()
            raise
        return table

    def _apply_load_flags(self, flags: LoadFlags) -> None:
        if flags & LoadFlags.HEADERLESS_SINGLEFIELD:
            if self.field_count != 1:
                raise ShapeError(0, self.field_count, 1)
            name = self._buffer.intern(HEADERLESS_FIELD_NAME.encode(self.encoding))
            self._cells.insert(0, [name])
        if flags & LoadFlags.PRUNE_EMPTY_COLUMNS:
            self.prune_columns()
        self.prune_rows(flags)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._buffer is None

    def close(self) -> None:
        if self._buffer is not None:
            self._buffer.release()
        self._buffer = None
        self._cells = []

    def __enter__(self) -> "CSVStaticTable":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_buffer(self) -> Buffer:
        if self._buffer is None:
            raise ValueError("operation on closed table")
        return self._buffer

    def __repr__(self) -> str:
        if self.closed:
            return "<CSVStaticTable closed>"
        return f"<CSVStaticTable fields={self.field_count} rows={self.row_count} encoding={self.encoding!r}>"

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def field_count(self) -> int:
        return len(self._cells[0]) if self._cells else 0

    @property
    def row_count(self) -> int:
        return max(len(self._cells) - 1, 0)

    def _decode(self, ref: FieldRef) -> str:
        return self._require_buffer().view(ref).decode(self.encoding, errors="surrogateescape")

    def field_name(self, field_index: int) -> str:
        self._require_buffer()
        assert 0 <= field_index < self.field_count, (
            f"field index {field_index} out of range for {self.field_count} fields"
        )
        return self._decode(self._cells[0][field_index])

    def cell(self, row_index: int, field_index: int) -> str:
        self._require_buffer()
        assert 0 <= row_index < self.row_count, f"row index {row_index} out of range for {self.row_count} rows"
        assert 0 <= field_index < self.field_count, (
            f"field index {field_index} out of range for {self.field_count} fields"
        )
        return self._decode(self._cells[row_index + 1][field_index])

    def header(self) -> list[str]:
        return [self.field_name(i) for i in range(self.field_count)]

    def row(self, row_index: int) -> list[str]:
        return [self.cell(row_index, i) for i in range(self.field_count)]

    def rows(self) -> Iterator[list[str]]:
        for row_index in range(self.row_count):
            yield self.row(row_index)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.rows()), columns=self.header(), dtype=object)

    # ── Structural mutation ──────────────────────────────────────────────────

    def delete_row(self, row_index: int) -> None:
        self._require_buffer()
        assert 0 <= row_index < self.row_count, f"row index {row_index} out of range for {self.row_count} rows"
        del self._cells[row_index + 1]

    def prune_columns(self) -> int:
        """Drop columns whose header is empty, warning about any value lost."""
        self._require_buffer()
        keep: list[int] = []
        pruned = 0
        for column, name in enumerate(self._cells[0]):
            if name.length:
                keep.append(column)
                continue
            pruned += 1
            for row_index, row in enumerate(self._cells[1:]):
                if row[column].length:
                    self.diagnostics.warning(
                        f"Ignoring value {self._decode(row[column])!r} with unnamed field "
                        f"(see field {column}, row {row_index})"
                    )

        if pruned:
            self._cells = [[row[column] for column in keep] for row in self._cells]
            self.diagnostics.info(f"Pruned {pruned} empty columns from table")
        return pruned

    def prune_rows(self, flags: LoadFlags | int = LoadFlags.DEFAULT) -> int:
        """Drop comment rows and/or all-empty data rows according to ``flags``."""
        flags = LoadFlags(flags)
        prune_comments = bool(flags & LoadFlags.PRUNE_COMMENT_ROWS)
        prune_empty = bool(flags & LoadFlags.PRUNE_EMPTY_ROWS)
        if not (prune_comments or prune_empty):
            return 0

        data = self._require_buffer().data
        kept = self._cells[:1]
        for row in self._cells[1:]:
            first = row[0]
            if prune_comments and first.length and data[first.start] == COMMENT_PREFIX:
                continue
            if prune_empty and all(ref.length == 0 for ref in row):
                continue
            kept.append(row)

        pruned = len(self._cells) - len(kept)
        self._cells = kept
        if pruned:
            self.diagnostics.info(f"Pruned {pruned} empty rows from table")
        return pruned

    # ── Serialization ────────────────────────────────────────────────────────

    def _serialized_rows(self) -> Iterator[bytes]:
        buffer = self._require_buffer()
        for row in self._cells:
            yield b",".join(quote_field(buffer.view(ref)) for ref in row)

    def to_csv_bytes(self, newline: str = "\n") -> bytes:
        terminator = newline.encode("ascii")
        out = io.BytesIO()
        if self.bom:
            out.write(UTF8_BOM)
        for line in self._serialized_rows():
            out.write(line)
            out.write(terminator)
        return out.getvalue()

    def write(self, path: Path | str, overwrite: bool = False, *, newline: str = "\n") -> None:
        try:
            fs.write_file_bytes(path, self.to_csv_bytes(newline), overwrite=overwrite)
        except (OverwriteRefused, TableIOError) as exc:
            self.diagnostics.error(str(exc))
            raise

    def print_table(self, stream: IO[str] | None = None, include_debug_info: bool = False) -> None:
        stream = stream or sys.stdout
        for index, line in enumerate(self._serialized_rows()):
            if include_debug_info:
                stream.write(f"[{index}]: ")
            stream.write(line.decode(self.encoding, errors="replace"))
            stream.write("\n")
