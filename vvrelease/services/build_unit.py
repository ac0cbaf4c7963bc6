"""Build unit runner: one target from source tree to BuildOutput.

Steps run strictly in order, each one depending on the previous:

1. isolate a private copy of the source tree and a private cargo target dir
2. prepare the toolchain (cross compiler first, if the target declares one)
3. propagate the release version into the crate manifests (skipped for DEBUG)
4. generate the C binding header
5. compile the C API library
6. build the Python wheel

Tool output goes to ``<unit>/logs/<step>.log`` so parallel units do not
interleave on the terminal.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from vvrelease.core.config import Config
from vvrelease.core.result import Err, Ok, Result
from vvrelease.core.source import SourceTree
from vvrelease.output.console import ConsoleProtocol, Style
from vvrelease.platform.files import reset_dir
from vvrelease.platform.process import format_command, run_logged
from vvrelease.release.errors import BuildError, BuildStage, ToolchainError
from vvrelease.release.model import BuildOutput
from vvrelease.release.targets import BuildTarget
from vvrelease.release.trigger import RunFlags
from vvrelease.release.version import ReleaseVersion
from vvrelease.services.timeouts import (
    COMPILE_TIMEOUT_SECONDS,
    METADATA_TIMEOUT_SECONDS,
    PACKAGE_TIMEOUT_SECONDS,
)
from vvrelease.services.toolchain import prepare_toolchain

__all__ = ["BuildUnitRunner", "UnitWorkspace"]

# Never copied into a unit's private source tree.
_SOURCE_IGNORE = ("target", ".git")


@dataclass(frozen=True, slots=True)
class UnitWorkspace:
    """Filesystem area owned by exactly one build unit."""

    root: Path

    @classmethod
    def for_target(cls, work_dir: Path, target: BuildTarget) -> UnitWorkspace:
        return cls(root=work_dir / target.artifact_name)

    @property
    def src(self) -> Path:
        return self.root / "src"

    @property
    def target_dir(self) -> Path:
        return self.root / "target"

    @property
    def wheels_dir(self) -> Path:
        return self.root / "wheels"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def artifact_dir(self) -> Path:
        return self.root / "artifact"

    def log(self, step: str) -> Path:
        return self.logs_dir / f"{step}.log"


class BuildUnitRunner:
    """Runs the build steps for one target at a time.

    One instance is shared by all units of a run; it holds only read-only
    state (the resolved version and the run flags).
    """

    def __init__(
        self,
        *,
        source: SourceTree,
        config: Config,
        version: ReleaseVersion,
        flags: RunFlags,
        work_dir: Path,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self._source = source
        self._config = config
        self._version = version
        self._flags = flags
        # Tools run with cwd inside the unit, so every path handed to them is absolute.
        self._work_dir = work_dir.resolve()
        self._base_env = dict(os.environ if base_env is None else base_env)

    def workspace(self, target: BuildTarget) -> UnitWorkspace:
        return UnitWorkspace.for_target(self._work_dir, target)

    def build(
        self, target: BuildTarget, *, console: ConsoleProtocol
    ) -> Result[BuildOutput, ToolchainError | BuildError]:
        ws = self.workspace(target)

        prepared = self._prepare_workspace(ws, console=console)
        if isinstance(prepared, Err):
            return prepared

        env = self._env(ws, target)

        toolchain = prepare_toolchain(
            target,
            cwd=ws.src,
            env=env,
            log_path=ws.log("toolchain"),
            console=console,
            propagate_version=self._flags.propagate_version,
        )
        if isinstance(toolchain, Err):
            return toolchain

        if self._flags.propagate_version:
            for cmd in self.version_commands(target):
                step = self._step(
                    cmd,
                    ws,
                    env,
                    stage="version",
                    timeout=METADATA_TIMEOUT_SECONDS,
                    console=console,
                )
                if isinstance(step, Err):
                    return step
        else:
            console.print("version: DEBUG build, manifests left untouched", Style.DIM)

        header = ws.root / f"{self._config.product.name}.h"
        step = self._step(
            self.header_command(header),
            ws,
            env,
            stage="header",
            timeout=METADATA_TIMEOUT_SECONDS,
            console=console,
        )
        if isinstance(step, Err):
            return step
        if not header.is_file():
            return Err(BuildError(stage="header", message=f"header not generated: {header}"))

        step = self._step(
            self.compile_command(target),
            ws,
            env,
            stage="compile",
            timeout=COMPILE_TIMEOUT_SECONDS,
            console=console,
        )
        if isinstance(step, Err):
            return step

        reset_dir(ws.wheels_dir)
        step = self._step(
            self.package_command(target, ws),
            ws,
            env,
            stage="package",
            timeout=PACKAGE_TIMEOUT_SECONDS,
            console=console,
        )
        if isinstance(step, Err):
            return step

        wheels = sorted(ws.wheels_dir.glob("*.whl"), key=lambda p: p.stat().st_mtime)
        if not wheels:
            return Err(
                BuildError(stage="package", message=f"no wheel produced in {ws.wheels_dir}")
            )

        return Ok(
            BuildOutput(
                target=target,
                header=header,
                release_dir=ws.target_dir / target.triple / "release",
                wheel=wheels[-1],
            )
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def version_commands(self, target: BuildTarget) -> list[list[str]]:
        product = self._config.product
        excludes: list[str] = []
        for crate in (product.python_api_crate, *product.unversioned_crates):
            excludes += ["--exclude", crate]
        return [
            ["cargo", "set-version", self._version.value, *excludes],
            [
                "cargo",
                "set-version",
                self._version.with_local(target.local_version),
                "-p",
                product.python_api_crate,
            ],
        ]

    def header_command(self, header: Path) -> list[str]:
        return ["cbindgen", "--crate", self._config.product.c_api_crate, "-o", str(header)]

    def compile_command(self, target: BuildTarget) -> list[str]:
        return [
            "cargo",
            "build",
            "-p",
            self._config.product.c_api_crate,
            "-vv",
            "--features",
            target.feature_arg,
            "--target",
            target.triple,
            "--release",
        ]

    def package_command(self, target: BuildTarget, ws: UnitWorkspace) -> list[str]:
        return [
            "maturin",
            "build",
            "--manifest-path",
            str(ws.src / self._config.product.python_api_manifest),
            "--features",
            target.feature_arg,
            "--target",
            target.triple,
            "--release",
            "--out",
            str(ws.wheels_dir),
        ]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _env(self, ws: UnitWorkspace, target: BuildTarget) -> dict[str, str]:
        env = dict(self._base_env)
        env["CARGO_TARGET_DIR"] = str(ws.target_dir)
        # Read by the onnxruntime build script to pick the runtime flavour.
        env["ORT_USE_CUDA"] = "true" if target.use_cuda else "false"
        return env

    def _prepare_workspace(
        self, ws: UnitWorkspace, *, console: ConsoleProtocol
    ) -> Result[None, BuildError]:
        work_dir = self._work_dir
        root = self._source.root.resolve()

        def ignore(directory: str, names: list[str]) -> set[str]:
            skipped = {n for n in names if n in _SOURCE_IGNORE}
            # The work dir usually lives inside the source root.
            if work_dir.name in names and Path(directory).resolve() == work_dir.parent:
                skipped.add(work_dir.name)
            return skipped

        console.print(f"workspace: {ws.root}", Style.DIM)
        try:
            ws.root.mkdir(parents=True, exist_ok=True)
            if ws.src.exists():
                shutil.rmtree(ws.src)
            shutil.copytree(root, ws.src, symlinks=True, ignore=ignore)
            ws.logs_dir.mkdir(parents=True, exist_ok=True)
            for stale in ws.logs_dir.glob("*.log"):
                stale.unlink()
        except OSError as e:
            return Err(
                BuildError(stage="workspace", message=f"failed to prepare unit workspace: {e}")
            )
        return Ok(None)

    def _step(
        self,
        cmd: list[str],
        ws: UnitWorkspace,
        env: dict[str, str],
        *,
        stage: BuildStage,
        timeout: float,
        console: ConsoleProtocol,
    ) -> Result[None, BuildError]:
        console.print(format_command(cmd), Style.DIM)
        log_path = ws.log(stage)
        result = run_logged(cmd, cwd=ws.src, env=env, log_path=log_path, timeout=timeout)
        if isinstance(result, Err):
            e = result.error
            tail = e.stderr.strip().splitlines()[-1:] if e.stderr.strip() else []
            return Err(
                BuildError(
                    stage=stage,
                    message=f"{stage} step failed: {e}",
                    hint=f"{tail[0]} (see {log_path})" if tail else f"see {log_path}",
                )
            )
        return Ok(None)
