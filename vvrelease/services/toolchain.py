"""Toolchain preparation for one build target.

Makes sure the cargo-installed build tools are on PATH (installing missing
ones with cargo-binstall), then installs the declared cross-compiler
packages (if any) and the rust standard library for the target triple.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from shutil import which

from vvrelease.core.result import Err, Ok, Result
from vvrelease.output.console import ConsoleProtocol, Style
from vvrelease.platform.process import format_command, run_logged
from vvrelease.release.errors import ToolchainError
from vvrelease.release.targets import BuildTarget
from vvrelease.services.timeouts import TOOLCHAIN_TIMEOUT_SECONDS

__all__ = [
    "binstall_command",
    "cross_compiler_commands",
    "missing_tools",
    "prepare_toolchain",
    "provision_tools",
    "required_tools",
    "rustup_command",
]

# (executable, crate that provides it)
_BUILD_TOOLS = (("cbindgen", "cbindgen"), ("maturin", "maturin"))
_VERSION_TOOL = ("cargo-set-version", "cargo-edit")

# Units share the host's cargo bin dir; only one of them installs at a time.
_provision_lock = threading.Lock()


def _privileged(cmd: list[str]) -> list[str]:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() != 0 and which("sudo") is not None:
        return ["sudo", *cmd]
    return cmd


def required_tools(*, propagate_version: bool) -> list[tuple[str, str]]:
    tools = list(_BUILD_TOOLS)
    if propagate_version:
        tools.append(_VERSION_TOOL)
    return tools


def missing_tools(
    env: dict[str, str], *, propagate_version: bool
) -> list[tuple[str, str]]:
    path = env.get("PATH")
    return [
        (exe, crate)
        for exe, crate in required_tools(propagate_version=propagate_version)
        if which(exe, path=path) is None
    ]


def binstall_command(crates: list[str]) -> list[str]:
    return ["cargo", "binstall", "--no-confirm", *crates]


def provision_tools(
    *,
    propagate_version: bool,
    cwd: Path,
    env: dict[str, str],
    log_path: Path,
    console: ConsoleProtocol,
) -> Result[None, ToolchainError]:
    """Install missing build tools with cargo-binstall.

    cargo-edit (for ``cargo set-version``) is only needed when the version is
    propagated, i.e. never for DEBUG builds.
    """
    with _provision_lock:
        missing = missing_tools(env, propagate_version=propagate_version)
        if not missing:
            return Ok(None)

        names = ", ".join(exe for exe, _ in missing)
        crates = [crate for _, crate in missing]
        if which("cargo-binstall", path=env.get("PATH")) is None:
            return Err(
                ToolchainError(
                    message=f"missing build tools: {names}",
                    hint=f"cargo install cargo-binstall && cargo binstall {' '.join(crates)}",
                )
            )

        cmd = binstall_command(crates)
        console.print(format_command(cmd), Style.DIM)
        result = run_logged(
            cmd, cwd=cwd, env=env, log_path=log_path, timeout=TOOLCHAIN_TIMEOUT_SECONDS
        )
        if isinstance(result, Err):
            return Err(
                ToolchainError(
                    message=f"failed to install build tools ({names}): {result.error}",
                    hint=f"see {log_path}",
                )
            )

        still = missing_tools(env, propagate_version=propagate_version)
        if still:
            return Err(
                ToolchainError(
                    message="build tools not on PATH after install: "
                    + ", ".join(exe for exe, _ in still),
                    hint="add the cargo bin directory to PATH",
                )
            )
    return Ok(None)


def cross_compiler_commands(target: BuildTarget) -> list[list[str]]:
    if not target.needs_cross_compiler:
        return []
    return [
        _privileged(["apt-get", "update"]),
        _privileged(["apt-get", "install", "-y", *target.cross_compiler_packages]),
    ]


def rustup_command(target: BuildTarget) -> list[str]:
    return ["rustup", "target", "add", target.triple]


def prepare_toolchain(
    target: BuildTarget,
    *,
    cwd: Path,
    env: dict[str, str],
    log_path: Path,
    console: ConsoleProtocol,
    propagate_version: bool = False,
) -> Result[None, ToolchainError]:
    """Make the host able to produce code for ``target.triple``.

    The cross compiler goes first: the rust target is useless without a linker.
    """
    provisioned = provision_tools(
        propagate_version=propagate_version,
        cwd=cwd,
        env=env,
        log_path=log_path,
        console=console,
    )
    if isinstance(provisioned, Err):
        return provisioned

    for cmd in (*cross_compiler_commands(target), rustup_command(target)):
        console.print(format_command(cmd), Style.DIM)
        result = run_logged(
            cmd, cwd=cwd, env=env, log_path=log_path, timeout=TOOLCHAIN_TIMEOUT_SECONDS
        )
        if isinstance(result, Err):
            e = result.error
            return Err(
                ToolchainError(
                    message=f"toolchain setup failed for {target.triple}: {e}",
                    hint=f"see {log_path}",
                )
            )
    return Ok(None)
