"""Typed configuration loading.

An optional ``vvrelease.toml`` at the source root overrides the defaults
below. The defaults describe the voicevox_core repository layout, so a
checkout without the file builds as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "BuildConfig",
    "PathsConfig",
    "ProductConfig",
    "ReleaseConfig",
    "CONFIG_FILENAME",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "vvrelease.toml"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ProductConfig:
    """Names of the product and of the crates the build touches."""

    name: str = "voicevox_core"
    c_api_crate: str = "voicevox_core_c_api"
    python_api_crate: str = "voicevox_core_python_api"
    python_api_manifest: str = "crates/voicevox_core_python_api/Cargo.toml"
    # Crates whose version is never bumped by set-version.
    unversioned_crates: tuple[str, ...] = ("xtask",)


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Paths relative to the source root (work_dir may be absolute)."""

    readme: str = "README.md"
    model: str = "model"
    downloads: str = "scripts/downloads"
    codesign_script: str = "build_util/codesign.bash"
    work_dir: str = ".vvrelease"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release store settings.

    ``repo`` empty means "the repository gh infers from the checkout".
    """

    repo: str | None = None
    target_commitish: str | None = None


@dataclass(frozen=True, slots=True)
class BuildConfig:
    max_workers: int | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    product: ProductConfig = field(default_factory=ProductConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    build: BuildConfig = field(default_factory=BuildConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        product: StrDict = get_table(data, "product") or {}
        paths: StrDict = get_table(data, "paths") or {}
        release: StrDict = get_table(data, "release") or {}
        build: StrDict = get_table(data, "build") or {}

        defaults_product = ProductConfig()
        defaults_paths = PathsConfig()

        unversioned = product.get("unversioned_crates")
        if unversioned is None:
            unversioned_crates = defaults_product.unversioned_crates
        elif isinstance(unversioned, list) and all(isinstance(x, str) for x in unversioned):
            unversioned_crates = tuple(str(x) for x in unversioned)
        else:
            raise ValueError("product.unversioned_crates must be a list of strings")

        max_workers = get_int(build, "max_workers")
        if max_workers is not None and max_workers < 1:
            raise ValueError("build.max_workers must be >= 1")

        return cls(
            product=ProductConfig(
                name=get_str(product, "name") or defaults_product.name,
                c_api_crate=get_str(product, "c_api_crate") or defaults_product.c_api_crate,
                python_api_crate=get_str(product, "python_api_crate")
                or defaults_product.python_api_crate,
                python_api_manifest=get_str(product, "python_api_manifest")
                or defaults_product.python_api_manifest,
                unversioned_crates=unversioned_crates,
            ),
            paths=PathsConfig(
                readme=get_str(paths, "readme") or defaults_paths.readme,
                model=get_str(paths, "model") or defaults_paths.model,
                downloads=get_str(paths, "downloads") or defaults_paths.downloads,
                codesign_script=get_str(paths, "codesign_script")
                or defaults_paths.codesign_script,
                work_dir=get_str(paths, "work_dir") or defaults_paths.work_dir,
            ),
            release=ReleaseConfig(
                repo=get_str(release, "repo"),
                target_commitish=get_str(release, "target_commitish"),
            ),
            build=BuildConfig(max_workers=max_workers),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, else defaults.

    A file that exists but does not parse is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
