"""Data passed between the stages of one build unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from vvrelease.release.errors import AssemblyWarning
from vvrelease.release.targets import BuildTarget
from vvrelease.release.version import ReleaseVersion

__all__ = ["ArtifactBundle", "AssetKind", "BuildOutput", "ReleaseAsset"]


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Raw files one build unit left on its own filesystem.

    ``release_dir`` is cargo's ``<target dir>/<triple>/release``; the product
    library, the import stub and the runtime libraries are looked up there.
    """

    target: BuildTarget
    header: Path
    release_dir: Path
    wheel: Path


def _no_warnings() -> tuple[AssemblyWarning, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class ArtifactBundle:
    target: BuildTarget
    version: ReleaseVersion
    path: Path
    warnings: tuple[AssemblyWarning, ...] = field(default_factory=_no_warnings)

    @property
    def name(self) -> str:
        return self.path.name


AssetKind = Literal["archive", "wheel", "downloader"]


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """A file to attach to the release named after ``version``."""

    path: Path
    kind: AssetKind
    version: ReleaseVersion

    @property
    def filename(self) -> str:
        return self.path.name
