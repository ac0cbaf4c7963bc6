"""Operating-system families and host detection.

A build target names the OS family it must be built on; the host is
detected once so the scheduler can skip targets this machine cannot build.
"""

from __future__ import annotations

import sys as _sys
from enum import Enum
from functools import lru_cache

__all__ = ["OsFamily", "detect_os_family"]


class OsFamily(Enum):
    """Operating-system family of a build host or target."""

    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"

    def __str__(self) -> str:
        return self.value

    @property
    def is_windows(self) -> bool:
        return self == OsFamily.WINDOWS

    def shared_library_name(self, stem: str) -> str:
        """Canonical shared-library filename for ``stem``.

        Example: shared_library_name("voicevox_core") -> "libvoicevox_core.so" on Linux.
        """
        match self:
            case OsFamily.WINDOWS:
                return f"{stem}.dll"
            case OsFamily.LINUX:
                return f"lib{stem}.so"
            case OsFamily.MACOS:
                return f"lib{stem}.dylib"

    def import_library_name(self, stem: str) -> str | None:
        """Canonical import stub name, Windows only."""
        return f"{stem}.lib" if self == OsFamily.WINDOWS else None


@lru_cache(maxsize=1)
def detect_os_family() -> OsFamily | None:
    """Detect the host OS family (None for unsupported hosts)."""
    if _sys.platform == "win32":
        return OsFamily.WINDOWS
    if _sys.platform == "darwin":
        return OsFamily.MACOS
    if _sys.platform.startswith("linux"):
        return OsFamily.LINUX
    return None
