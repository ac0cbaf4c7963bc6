"""Target catalog: the fixed build matrix.

Each entry is one platform / instruction set / accelerator combination that
is built, bundled and published independently of the others.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from vvrelease.core.result import Err, Ok, Result
from vvrelease.platform.detection import OsFamily
from vvrelease.release.errors import ConfigurationError

__all__ = [
    "AARCH64_LINUX_CROSS",
    "Backend",
    "BuildTarget",
    "DEFAULT_CATALOG",
    "TargetSelection",
    "select_targets",
    "validate_catalog",
]


class Backend(Enum):
    """Accelerator backend linked into the runtime."""

    CPU = "cpu"
    CUDA = "cuda"
    DIRECTML = "directml"

    def __str__(self) -> str:
        return self.value

    @property
    def use_cuda(self) -> bool:
        return self == Backend.CUDA


AARCH64_LINUX_CROSS = ("gcc-aarch64-linux-gnu", "g++-aarch64-linux-gnu")


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One matrix cell.

    ``local_version`` is appended to the wheel version (``0.14.0+cuda``) so
    wheels of the same base version but different backends stay distinct.
    ``cross_compiler_packages`` are system packages installed before
    compiling; a non-empty tuple is the target's cross-compiler flag.
    """

    os: OsFamily
    triple: str
    backend: Backend
    artifact_name: str
    local_version: str
    features: str = ""
    cross_compiler_packages: tuple[str, ...] = field(default=())

    @property
    def needs_cross_compiler(self) -> bool:
        return bool(self.cross_compiler_packages)

    @property
    def use_cuda(self) -> bool:
        return self.backend.use_cuda

    @property
    def feature_arg(self) -> str:
        """Value for ``--features``; the trailing comma keeps an empty list valid."""
        return f"{self.features},"

    def __str__(self) -> str:
        return self.artifact_name


def _t(
    os: OsFamily,
    triple: str,
    artifact_name: str,
    backend: Backend = Backend.CPU,
    *,
    features: str = "",
    cross: tuple[str, ...] = (),
) -> BuildTarget:
    return BuildTarget(
        os=os,
        triple=triple,
        backend=backend,
        artifact_name=artifact_name,
        local_version=backend.value,
        features=features,
        cross_compiler_packages=cross,
    )


DEFAULT_CATALOG: tuple[BuildTarget, ...] = (
    _t(OsFamily.WINDOWS, "x86_64-pc-windows-msvc", "windows-x64-cpu"),
    _t(
        OsFamily.WINDOWS,
        "x86_64-pc-windows-msvc",
        "windows-x64-directml",
        Backend.DIRECTML,
        features="directml",
    ),
    _t(OsFamily.WINDOWS, "x86_64-pc-windows-msvc", "windows-x64-cuda", Backend.CUDA),
    _t(OsFamily.WINDOWS, "i686-pc-windows-msvc", "windows-x86-cpu"),
    _t(OsFamily.LINUX, "x86_64-unknown-linux-gnu", "linux-x64-cpu"),
    _t(OsFamily.LINUX, "x86_64-unknown-linux-gnu", "linux-x64-gpu", Backend.CUDA),
    _t(
        OsFamily.LINUX,
        "aarch64-unknown-linux-gnu",
        "linux-arm64-cpu",
        cross=AARCH64_LINUX_CROSS,
    ),
    _t(OsFamily.MACOS, "aarch64-apple-darwin", "osx-aarch64-cpu"),
    _t(OsFamily.MACOS, "x86_64-apple-darwin", "osx-x64-cpu"),
)


def validate_catalog(
    targets: Sequence[BuildTarget],
) -> Result[tuple[BuildTarget, ...], ConfigurationError]:
    """Check mandatory fields and that artifact names are pairwise distinct."""
    if not targets:
        return Err(ConfigurationError("target catalog is empty"))

    for index, t in enumerate(targets):
        for name, value in (
            ("triple", t.triple),
            ("artifact_name", t.artifact_name),
            ("local_version", t.local_version),
        ):
            if not value.strip():
                return Err(
                    ConfigurationError(
                        f"target #{index} ({t.artifact_name or '?'}) is missing {name}"
                    )
                )

    counts = Counter(t.artifact_name for t in targets)
    dupes = sorted(name for name, n in counts.items() if n > 1)
    if dupes:
        return Err(ConfigurationError(f"duplicate artifact names: {', '.join(dupes)}"))

    return Ok(tuple(targets))


@dataclass(frozen=True, slots=True)
class TargetSelection:
    selected: tuple[BuildTarget, ...]
    skipped: tuple[BuildTarget, ...]


def select_targets(
    catalog: Sequence[BuildTarget],
    *,
    names: Iterable[str] = (),
    host: OsFamily | None,
) -> Result[TargetSelection, ConfigurationError]:
    """Pick the targets to build, preserving catalog order.

    Explicit ``names`` must all exist in the catalog. Without names, every
    target of the host's OS family is selected and the rest are skipped.
    """
    wanted = list(dict.fromkeys(names))
    known = {t.artifact_name for t in catalog}
    unknown = [n for n in wanted if n not in known]
    if unknown:
        return Err(
            ConfigurationError(
                f"unknown target(s): {', '.join(unknown)}",
                hint=f"available: {', '.join(t.artifact_name for t in catalog)}",
            )
        )

    if wanted:
        chosen = set(wanted)
    else:
        chosen = {t.artifact_name for t in catalog if host is not None and t.os == host}

    selected = tuple(t for t in catalog if t.artifact_name in chosen)
    skipped = tuple(t for t in catalog if t.artifact_name not in chosen)
    if not selected:
        return Err(
            ConfigurationError(
                f"no targets to build on this host ({host or 'unsupported'})",
                hint="pass --target to choose targets explicitly",
            )
        )
    return Ok(TargetSelection(selected=selected, skipped=skipped))
