"""Source tree detection and paths.

The source root is the cargo workspace being released: the directory whose
``Cargo.toml`` declares a ``[workspace]`` table.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILENAME
from .result import Err, Ok, Result

__all__ = [
    "SourceTree",
    "SourceError",
    "detect_source_tree",
    "find_source_upward",
    "is_source_root",
]


@dataclass(frozen=True, slots=True)
class SourceError:
    """Error when the source tree cannot be located."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class SourceTree:
    """A detected cargo workspace checkout."""

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    @property
    def manifest_path(self) -> Path:
        return self.root / "Cargo.toml"

    def resolve(self, rel: str) -> Path:
        """Resolve a configured path against the root (absolute paths pass through)."""
        p = Path(rel).expanduser()
        return p if p.is_absolute() else self.root / p

    def __str__(self) -> str:
        return str(self.root)


def is_source_root(path: Path) -> bool:
    manifest = path / "Cargo.toml"
    if not manifest.is_file():
        return False
    try:
        text = manifest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    return any(line.strip() == "[workspace]" for line in text.splitlines())


def find_source_upward(start: Path) -> Path | None:
    for parent in (start, *start.parents):
        if is_source_root(parent):
            return parent
    return None


def detect_source_tree(
    *,
    explicit: Path | None = None,
    start_dir: Path | None = None,
    env_var: str = "VV_SOURCE_ROOT",
) -> Result[SourceTree, SourceError]:
    """Detect the source root.

    Detection order:
    1. ``explicit`` (the --source option)
    2. the environment variable (if set)
    3. upward search from start_dir (or cwd)
    """
    if explicit is not None:
        root = explicit.expanduser().resolve()
        if is_source_root(root):
            return Ok(SourceTree(root=root))
        return Err(SourceError(f"not a cargo workspace: {root}", searched_from=root))

    env_value = os.environ.get(env_var)
    if env_value:
        root = Path(env_value).expanduser().resolve()
        if is_source_root(root):
            return Ok(SourceTree(root=root))
        return Err(SourceError(f"{env_var} is not a cargo workspace: {root}", searched_from=root))

    start = (start_dir or Path.cwd()).resolve()
    found = find_source_upward(start)
    if found is None:
        return Err(
            SourceError(
                "cargo workspace not found (no Cargo.toml with [workspace] above "
                f"{start}); pass --source",
                searched_from=start,
            )
        )
    return Ok(SourceTree(root=found))
