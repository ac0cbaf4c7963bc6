"""Artifact assembly: BuildOutput -> canonical bundle directory.

Bundle layout (consumed by downstream tooling, keep it exact)::

    voicevox_core-<artifact_name>-<version>/
        voicevox_core.h
        <product library, platform-canonical name>
        voicevox_core.lib            (Windows only, when produced)
        <versioned runtime libraries>
        README.txt
        model/
        VERSION                      (the version string, nothing else)

Only the product library is mandatory. Every other input is looked up as an
optional resource; absence becomes an AssemblyWarning on the bundle.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from vvrelease.core.config import Config
from vvrelease.core.result import Err, Ok, Result
from vvrelease.core.source import SourceTree
from vvrelease.output.console import ConsoleProtocol, Style
from vvrelease.platform.files import atomic_write_text, copy_no_clobber, reset_dir
from vvrelease.release.errors import AssemblyWarning, BundleError, SigningError
from vvrelease.release.model import ArtifactBundle, BuildOutput
from vvrelease.release.trigger import RunFlags, Secrets
from vvrelease.release.version import ReleaseVersion
from vvrelease.services.signing import sign_library

__all__ = [
    "ArtifactAssembler",
    "RUNTIME_LIBRARY_DIR_GLOB",
    "RUNTIME_LIBRARY_PATTERNS",
    "bundle_name",
    "dedupe_runtime_libraries",
    "find_optional",
    "glob_optional",
]

# Where the onnxruntime-sys build script unpacks the prebuilt runtime.
RUNTIME_LIBRARY_DIR_GLOB = "build/onnxruntime-sys-*/out/onnxruntime_*/onnxruntime-*/lib"
RUNTIME_LIBRARY_PATTERNS = ("*.dll", "*.so.*", "*.so", "*.dylib")

_UNVERSIONED_RE = re.compile(r"^lib(?P<name>.+)\.(?P<ext>so|dylib)$")


def bundle_name(product: str, artifact_name: str, version: ReleaseVersion) -> str:
    return f"{product}-{artifact_name}-{version.value}"


def find_optional(path: Path) -> Path | None:
    """Return ``path`` if it exists, else None."""
    return path if path.exists() else None


def glob_optional(base: Path, pattern: str) -> tuple[Path, ...]:
    """Sorted matches of ``pattern`` under ``base`` (empty when base is absent)."""
    if not base.is_dir():
        return ()
    return tuple(sorted(base.glob(pattern)))


def _versioned_re(name: str, ext: str) -> re.Pattern[str]:
    stem = re.escape(name)
    if ext == "so":
        return re.compile(rf"^lib{stem}\.so\.\d[\w.]*$")
    return re.compile(rf"^lib{stem}\.\d[\w.]*\.dylib$")


def dedupe_runtime_libraries(
    bundle_dir: Path, runtime_names: Iterable[str]
) -> Result[tuple[str, ...], BundleError]:
    """Remove unversioned runtime libraries that have a versioned copy.

    For each unversioned ``lib<name>.so`` / ``lib<name>.dylib`` among
    ``runtime_names``:

    - one versioned sibling: the unversioned file is deleted
    - no versioned sibling: it is the only copy and is kept
    - several versioned siblings: the loader target is ambiguous -> BundleError

    Returns the names that were removed.
    """
    names = sorted(set(runtime_names))
    removed: list[str] = []
    for filename in names:
        m = _UNVERSIONED_RE.match(filename)
        if m is None:
            continue
        versioned_re = _versioned_re(m.group("name"), m.group("ext"))
        versioned = [n for n in names if versioned_re.match(n)]
        if not versioned:
            continue
        if len(versioned) > 1:
            return Err(
                BundleError(
                    message=f"ambiguous runtime library {filename}: "
                    f"several versioned copies ({', '.join(versioned)})",
                    hint="clean the cargo target dir so only one runtime version is present",
                )
            )
        (bundle_dir / filename).unlink(missing_ok=True)
        removed.append(filename)
    return Ok(tuple(removed))


@dataclass(slots=True)
class _Collected:
    warnings: list[AssemblyWarning]

    def warn(self, console: ConsoleProtocol, message: str) -> None:
        self.warnings.append(AssemblyWarning(message))
        console.warning(message)


class ArtifactAssembler:
    """Builds one bundle per successful BuildOutput."""

    def __init__(
        self,
        *,
        source: SourceTree,
        config: Config,
        flags: RunFlags,
        secrets: Secrets,
    ) -> None:
        self._source = source
        self._config = config
        self._flags = flags
        self._secrets = secrets

    def assemble(
        self,
        output: BuildOutput,
        version: ReleaseVersion,
        *,
        out_dir: Path,
        console: ConsoleProtocol,
        log_dir: Path,
    ) -> Result[ArtifactBundle, BundleError | SigningError]:
        target = output.target
        product = self._config.product.name
        collected = _Collected(warnings=[])

        # Evaluated once for this unit.
        sign = self._flags.sign_target(target)

        library = self._find_product_library(output)
        if library is None:
            return Err(
                BundleError(
                    message=f"product library not found in {output.release_dir}",
                    hint=f"expected {target.os.shared_library_name(product)}",
                )
            )

        bundle_dir = out_dir / bundle_name(product, target.artifact_name, version)
        console.print(f"assemble: {bundle_dir.name}", Style.DIM)

        try:
            reset_dir(bundle_dir)

            if find_optional(output.header) is not None:
                shutil.copy2(output.header, bundle_dir / output.header.name)
            else:
                collected.warn(console, f"binding header missing: {output.header}")

            library_dest = bundle_dir / target.os.shared_library_name(product)
            shutil.copy2(library, library_dest)

            stub_name = target.os.import_library_name(product)
            if stub_name is not None:
                stub = find_optional(output.release_dir / f"{product}.dll.lib")
                if stub is not None:
                    shutil.copy2(stub, bundle_dir / stub_name)
                else:
                    collected.warn(console, f"import library missing: {product}.dll.lib")

            runtime_names = self._copy_runtime_libraries(output, bundle_dir, library_dest.name)
            deduped = dedupe_runtime_libraries(bundle_dir, runtime_names)
            if isinstance(deduped, Err):
                return deduped
            for name in deduped.value:
                console.print(f"removed unversioned {name}", Style.DIM)

            self._copy_collateral(bundle_dir, collected, console)
            atomic_write_text(bundle_dir / "VERSION", version.value)
        except OSError as e:
            return Err(BundleError(message=f"failed to assemble {bundle_dir.name}: {e}"))

        if sign:
            signed = sign_library(
                library_dest,
                script=self._source.resolve(self._config.paths.codesign_script),
                cwd=self._source.root,
                secrets=self._secrets,
                log_path=log_dir / "sign.log",
                console=console,
            )
            if isinstance(signed, Err):
                return signed

        return Ok(
            ArtifactBundle(
                target=target,
                version=version,
                path=bundle_dir,
                warnings=tuple(collected.warnings),
            )
        )

    def _find_product_library(self, output: BuildOutput) -> Path | None:
        product = self._config.product.name
        canonical = find_optional(
            output.release_dir / output.target.os.shared_library_name(product)
        )
        if canonical is not None:
            return canonical
        for ext in ("dll", "so", "dylib"):
            candidates = glob_optional(output.release_dir, f"*{product}.{ext}")
            matches = [p for p in candidates if p.is_file()]
            if matches:
                return matches[0]
        return None

    def _copy_runtime_libraries(
        self, output: BuildOutput, bundle_dir: Path, product_library: str
    ) -> list[str]:
        copied: list[str] = []
        for lib_dir in glob_optional(output.release_dir, RUNTIME_LIBRARY_DIR_GLOB):
            for pattern in RUNTIME_LIBRARY_PATTERNS:
                for src in glob_optional(lib_dir, pattern):
                    if not src.is_file() or src.name == product_library:
                        continue
                    if copy_no_clobber(src, bundle_dir) is not None:
                        copied.append(src.name)
        return copied

    def _copy_collateral(
        self, bundle_dir: Path, collected: _Collected, console: ConsoleProtocol
    ) -> None:
        paths = self._config.paths

        readme = find_optional(self._source.resolve(paths.readme))
        if readme is not None and readme.is_file():
            shutil.copy2(readme, bundle_dir / "README.txt")
        else:
            collected.warn(console, f"notes file missing: {paths.readme}")

        model = find_optional(self._source.resolve(paths.model))
        if model is not None and model.is_dir():
            shutil.copytree(model, bundle_dir / model.name)
        else:
            collected.warn(console, f"model directory missing: {paths.model}")
