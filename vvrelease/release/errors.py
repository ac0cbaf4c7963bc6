"""Error taxonomy for a release run.

Each kind says how far the failure reaches:

- ConfigurationError aborts the run before any build starts.
- ToolchainError, BuildError, BundleError and SigningError fail one target.
- PublishError fails one asset's publication.
- AssemblyWarning is reported but never fails anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

__all__ = [
    "AssemblyWarning",
    "BuildError",
    "BuildStage",
    "BundleError",
    "ConfigurationError",
    "PublishError",
    "SigningError",
    "ToolchainError",
    "UnitError",
]

BuildStage = Literal["workspace", "version", "header", "compile", "package"]


@dataclass(frozen=True, slots=True)
class ConfigurationError:
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class ToolchainError:
    message: str
    hint: str | None = None

    stage = "toolchain"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class BuildError:
    """Compilation, header generation or packaging failure."""

    stage: BuildStage
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class BundleError:
    """The bundle could not be assembled or archived (e.g. product library missing)."""

    message: str
    hint: str | None = None

    stage = "assemble"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class SigningError:
    message: str
    hint: str | None = None

    stage = "sign"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class PublishError:
    asset: str
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.asset}: {self.message} (hint: {self.hint})"
        return f"{self.asset}: {self.message}"


@dataclass(frozen=True, slots=True)
class AssemblyWarning:
    """An optional bundle input was absent or ambiguous-but-harmless."""

    message: str

    def pretty(self) -> str:
        return self.message


UnitError = ToolchainError | BuildError | BundleError | SigningError
