"""File helpers used by the table model (whole-file reads, atomic writes)."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

from csv_static_table.errors import OverwriteRefused, TableIOError


def file_exists(path: Path | str) -> bool:
    return Path(path).is_file()


def file_size(path: Path | str) -> int:
    try:
        return Path(path).stat().st_size
    except OSError as exc:
        raise TableIOError(f"Unable to stat file '{path}': {exc.strerror or exc}", path) from exc


def read_file_bytes(path: Path | str) -> bytes:
    path = Path(path)
    if not file_exists(path):
        raise TableIOError(f"Unable to open file '{path}' for reading", path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise TableIOError(f"Unable to read file '{path}': {exc.strerror or exc}", path) from exc


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _default_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_file_bytes(path: Path | str, data: bytes, *, overwrite: bool = False) -> None:
    """
    Write ``data`` to ``path`` through a temp file and ``os.replace``.

    Raises OverwriteRefused when the target exists and ``overwrite`` is not
    set; OS failures become TableIOError and leave no partial file behind.
    The written file keeps the mode of the file it replaces, or gets the
    umask default for a new file.
    """
    path = Path(path)
    if file_exists(path) and not overwrite:
        raise OverwriteRefused(path)

    tmp_path: Path | None = None
    try:
        ensure_parent(path)
        mode = stat.S_IMODE(path.stat().st_mode) if file_exists(path) else _default_mode()
        tmp_fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        tmp_path = Path(tmp_name)
        with os.fdopen(tmp_fd, "wb") as handle:
            handle.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as exc:
        raise TableIOError(f"Unable to open file '{path}' for writing: {exc.strerror or exc}", path) from exc
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
