"""Filesystem helpers shared by the registry and the transaction engine."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


def sha256_file(path: PathLike) -> str:
    """Return the hex SHA-256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def is_relative_to(child: Path, parent: Path) -> bool:
    """True when ``child`` lies inside ``parent`` (both already resolved)."""
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def atomic_write_text(path: PathLike, text: str) -> None:
    """Write ``text`` next to ``path`` and swap it in with ``os.replace``.

    The destination is either the old content or the full new content;
    the temporary file is removed on failure.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, target)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def dir_is_empty(path: PathLike) -> bool:
    """True for a missing directory or one without entries."""
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except FileNotFoundError:
        return True
