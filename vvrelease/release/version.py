"""Release version resolution.

A run has exactly one version, chosen once from the trigger:

1. the published release's tag,
2. the operator's manual input,
3. otherwise the ``DEBUG`` sentinel, which disables publishing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from vvrelease.core.result import Err, Ok, Result
from vvrelease.release.errors import ConfigurationError

if TYPE_CHECKING:
    from vvrelease.release.trigger import Trigger

__all__ = ["DEBUG", "ReleaseVersion", "VersionKind", "parse_version", "resolve_version"]

DEBUG = "DEBUG"

_STABLE_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")
_PREVIEW_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)-preview\.(0|[1-9]\d*)$"
)

VersionKind = Literal["stable", "preview", "debug"]


@dataclass(frozen=True, slots=True)
class ReleaseVersion:
    value: str
    kind: VersionKind

    @classmethod
    def debug(cls) -> ReleaseVersion:
        return cls(value=DEBUG, kind="debug")

    @property
    def is_debug(self) -> bool:
        return self.kind == "debug"

    @property
    def is_prerelease(self) -> bool:
        return self.kind == "preview"

    @property
    def base(self) -> str:
        """The ``A.BB.C`` part (the sentinel for DEBUG)."""
        return self.value.split("-", 1)[0]

    def with_local(self, suffix: str) -> str:
        """Package version carrying a local-version suffix, e.g. ``0.14.0+cuda``."""
        return f"{self.value}+{suffix}"

    def __str__(self) -> str:
        return self.value


def parse_version(text: str) -> Result[ReleaseVersion, ConfigurationError]:
    """Parse a stable or preview version string.

    The sentinel is not accepted here; it is only ever produced by
    ``resolve_version`` when no version was supplied.
    """
    value = text.strip()
    if _STABLE_RE.match(value):
        return Ok(ReleaseVersion(value=value, kind="stable"))
    if _PREVIEW_RE.match(value):
        return Ok(ReleaseVersion(value=value, kind="preview"))
    return Err(
        ConfigurationError(
            message=f"invalid version: {text!r}",
            hint="expected A.BB.C or A.BB.C-preview.D (e.g. 0.14.0, 0.14.0-preview.3)",
        )
    )


def resolve_version(trigger: Trigger) -> Result[ReleaseVersion, ConfigurationError]:
    """Resolve the run's version from the trigger (tag, then input, then DEBUG)."""
    for candidate in (trigger.release_tag, trigger.version_input):
        if candidate is not None and candidate.strip():
            return parse_version(candidate)
    return Ok(ReleaseVersion.debug())
