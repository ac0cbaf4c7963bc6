"""Release domain: versions, targets, triggers, errors and stage data."""

from vvrelease.release.errors import (
    AssemblyWarning,
    BuildError,
    BundleError,
    ConfigurationError,
    PublishError,
    SigningError,
    ToolchainError,
    UnitError,
)
from vvrelease.release.model import ArtifactBundle, BuildOutput, ReleaseAsset
from vvrelease.release.targets import (
    DEFAULT_CATALOG,
    Backend,
    BuildTarget,
    select_targets,
    validate_catalog,
)
from vvrelease.release.trigger import RunFlags, Secrets, Trigger, load_github_trigger
from vvrelease.release.version import DEBUG, ReleaseVersion, parse_version, resolve_version

__all__ = [
    "AssemblyWarning",
    "BuildError",
    "BundleError",
    "ConfigurationError",
    "PublishError",
    "SigningError",
    "ToolchainError",
    "UnitError",
    "ArtifactBundle",
    "BuildOutput",
    "ReleaseAsset",
    "DEFAULT_CATALOG",
    "Backend",
    "BuildTarget",
    "select_targets",
    "validate_catalog",
    "RunFlags",
    "Secrets",
    "Trigger",
    "load_github_trigger",
    "DEBUG",
    "ReleaseVersion",
    "parse_version",
    "resolve_version",
]
