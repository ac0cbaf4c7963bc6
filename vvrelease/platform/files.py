"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "copy_no_clobber", "reset_dir"]


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace.

    The content is written verbatim (no newline translation).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def copy_no_clobber(src: Path, dest_dir: Path) -> Path | None:
    """Copy ``src`` into ``dest_dir`` unless a file of that name is already there.

    Returns the destination path, or None when the copy was skipped.
    Symlinks are followed so the bundle holds real files.
    """
    dest = dest_dir / src.name
    if dest.exists() or dest.is_symlink():
        return None
    shutil.copy2(src, dest)
    return dest


def reset_dir(path: Path) -> Path:
    """Remove ``path`` if present and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path
