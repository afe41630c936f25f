"""
tokenizer.py - in-place CSV tokenizer over a single owned byte buffer

The whole file lives in one ``bytearray`` (the ``Buffer``). Tokens are never
copied out: each one is a ``FieldRef`` range into the buffer, and the bytes
that separated tokens (delimiters, line terminators, closing quotes) are
overwritten with NUL as they are consumed. Quoted fields are unescaped in
place, so after tokenizing the original raw text is gone.

Public API:
    buffer = Buffer(raw_bytes)
    cursor = buffer.cursor()
    line   = cursor.next_line()
    fields, unterminated = split_fields(buffer, line)
    text   = buffer.view(fields[0])
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

NUL = 0
QUOTE = 0x22
COMMA = b","

NEWLINE_POLICIES = ("auto", "crlf")

# A quote opens a quoted field only as the first byte of a field; a
# terminator only counts outside quoted fields.
_LINE_SCANNERS = {
    "auto": re.compile(rb'"|,|\r?\n'),
    "crlf": re.compile(rb'"|,|\r\n'),
}


class FieldRef(NamedTuple):
    """Half-open ``[start, stop)`` byte range into a ``Buffer``."""

    start: int
    stop: int

    @property
    def length(self) -> int:
        return self.stop - self.start


class Buffer:
    """Arena owning the raw file bytes and any literals added after load."""

    def __init__(self, raw: bytes | bytearray, *, skip: int = 0) -> None:
        self._data: Optional[bytearray] = bytearray(raw)
        self.size = len(self._data)
        self.skip = skip

    @property
    def data(self) -> bytearray:
        if self._data is None:
            raise ValueError("buffer has been released")
        return self._data

    @property
    def released(self) -> bool:
        return self._data is None

    def cursor(self, start: int | None = None, stop: int | None = None) -> "Cursor":
        return Cursor(
            self,
            self.skip if start is None else start,
            self.size if stop is None else stop,
        )

    def view(self, ref: FieldRef) -> bytes:
        return bytes(self.data[ref.start:ref.stop])

    def intern(self, literal: bytes) -> FieldRef:
        """Append ``literal`` after the file data and return a view of it."""
        data = self.data
        data.append(NUL)
        start = len(data)
        data.extend(literal)
        return FieldRef(start, len(data))

    def release(self) -> None:
        self._data = None


class Cursor:
    """
    Explicit tokenizer position over ``buffer[pos:stop]``.

    One cursor walks the records of a buffer; a fresh cursor bounded to a
    record's range walks that record's fields.
    """

    def __init__(self, buffer: Buffer, start: int, stop: int) -> None:
        self.buffer = buffer
        self.pos = start
        self.stop = stop
        self.unterminated = False
        # False once a quoted field has run to the end of the range: there is
        # no implicit field left over after it.
        self.has_leftover = True

    @property
    def exhausted(self) -> bool:
        return self.pos >= self.stop

    def remainder(self) -> FieldRef:
        return FieldRef(self.pos, self.stop)

    def next_token(self, delimiter: bytes) -> Optional[FieldRef]:
        """
        Return the range up to the next ``delimiter`` and step past it.

        Delimiter bytes are overwritten with NUL. Returns None when no
        delimiter remains; the cursor is left in place so the caller can
        take ``remainder()`` as the trailing token.
        """
        data = self.buffer.data
        found = data.find(delimiter, self.pos, self.stop)
        if found < 0:
            return None
        end = found + len(delimiter)
        data[found:end] = bytes(end - found)
        token = FieldRef(self.pos, found)
        self.pos = end
        self.has_leftover = True
        return token

    def next_field(self) -> Optional[FieldRef]:
        """Return the next comma-separated field, unescaping quoted ones in place."""
        if self.exhausted:
            return None
        data = self.buffer.data
        if data[self.pos] != QUOTE:
            return self.next_token(COMMA)

        start = self.pos
        read = start + 1
        write = start
        while read < self.stop:
            byte = data[read]
            if byte == QUOTE:
                if read + 1 < self.stop and data[read + 1] == QUOTE:
                    data[write] = QUOTE
                    write += 1
                    read += 2
                    continue
                break
            data[write] = byte
            write += 1
            read += 1
        else:
            self.unterminated = True

        end = min(read + 1, self.stop)
        data[write:end] = bytes(end - write)
        self.pos = end

        # Anything between the closing quote and the next comma is dropped.
        if self.next_token(COMMA) is None:
            self.pos = self.stop
            self.has_leftover = False
        return FieldRef(start, write)

    def next_line(self, newline: str = "auto") -> Optional[FieldRef]:
        """
        Return the next record, ignoring terminators inside quoted fields.

        ``newline="auto"`` ends a record at ``\\r\\n`` or ``\\n``; ``"crlf"``
        only at the literal two-byte ``\\r\\n``. A final record without a
        terminator is still returned.
        """
        if self.exhausted:
            return None
        scanner = _scanner_for(newline)
        data = self.buffer.data
        in_quotes = False
        field_start = index = self.pos
        while True:
            match = scanner.search(data, index, self.stop)
            if match is None:
                line = FieldRef(self.pos, self.stop)
                self.pos = self.stop
                return line
            index = match.end()
            token = match.group()
            if in_quotes:
                if token == b'"':
                    if index < self.stop and data[index] == QUOTE:
                        index += 1
                    else:
                        in_quotes = False
                continue
            if token == b'"':
                # Mid-field quotes are literal, as in next_field.
                in_quotes = match.start() == field_start
                continue
            if token == COMMA:
                field_start = index
                continue
            line = FieldRef(self.pos, match.start())
            data[match.start():match.end()] = bytes(match.end() - match.start())
            self.pos = match.end()
            return line


def _scanner_for(newline: str) -> re.Pattern:
    try:
        return _LINE_SCANNERS[newline]
    except KeyError:
        raise ValueError(
            f"Unknown newline policy {newline!r}; expected one of {', '.join(NEWLINE_POLICIES)}"
        ) from None


def split_fields(buffer: Buffer, line: FieldRef) -> tuple[list[FieldRef], bool]:
    """
    Split one record into field ranges.

    The text after the last delimiter is always appended as the final field,
    unless the record ended with a quoted field. Returns the fields and
    whether a quoted field was left unterminated.
    """
    cursor = buffer.cursor(line.start, line.stop)
    fields: list[FieldRef] = []
    while True:
        field = cursor.next_field()
        if field is None:
            break
        fields.append(field)
    if cursor.has_leftover:
        fields.append(cursor.remainder())
    return fields, cursor.unterminated
