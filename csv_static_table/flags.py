from __future__ import annotations

import enum


class LoadFlags(enum.IntFlag):
    NONE = 0
    PRUNE_EMPTY_COLUMNS = 1
    PRUNE_EMPTY_ROWS = 2
    PRUNE_COMMENT_ROWS = 4
    HEADERLESS_SINGLEFIELD = 8

    PRUNE_EMPTY = PRUNE_EMPTY_COLUMNS | PRUNE_EMPTY_ROWS
    DEFAULT = PRUNE_EMPTY_COLUMNS | PRUNE_EMPTY_ROWS | PRUNE_COMMENT_ROWS

    @classmethod
    def parse(cls, text: str) -> "LoadFlags":
        """
        Parse ``default``, ``none`` or a comma list such as
        ``prune-empty-rows,prune-comment-rows``.
        """
        flags = cls.NONE
        for part in text.split(","):
            name = part.strip().upper().replace("-", "_")
            if not name:
                continue
            try:
                flags |= cls[name]
            except KeyError:
                valid = ", ".join(member.lower().replace("_", "-") for member in cls.__members__)
                raise ValueError(f"Unknown load flag {part.strip()!r}; expected one of: {valid}") from None
        return flags

    def describe(self) -> list[str]:
        return [
            flag.name.lower().replace("_", "-")
            for flag in (
                LoadFlags.PRUNE_EMPTY_COLUMNS,
                LoadFlags.PRUNE_EMPTY_ROWS,
                LoadFlags.PRUNE_COMMENT_ROWS,
                LoadFlags.HEADERLESS_SINGLEFIELD,
            )
            if self & flag
        ]
