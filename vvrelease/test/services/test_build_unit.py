"""Tests for vvrelease.services.build_unit module."""

from __future__ import annotations

from pathlib import Path

import pytest

from vvrelease.core.config import Config
from vvrelease.core.result import Err, Ok
from vvrelease.core.source import SourceTree
from vvrelease.output.console import MockConsole
from vvrelease.release.targets import DEFAULT_CATALOG, BuildTarget
from vvrelease.release.trigger import RunFlags
from vvrelease.release.version import ReleaseVersion
from vvrelease.services import build_unit as build_unit_mod
from vvrelease.services import toolchain as toolchain_mod
from vvrelease.services.build_unit import BuildUnitRunner, UnitWorkspace

from ._fake_tools import FakeTools, installed_tools, make_source

STABLE = ReleaseVersion(value="0.14.0", kind="stable")


def _target(name: str) -> BuildTarget:
    return next(t for t in DEFAULT_CATALOG if t.artifact_name == name)


def _flags(*, propagate: bool = True) -> RunFlags:
    return RunFlags(propagate_version=propagate, publish=False, sign=False)


def _runner(
    tmp_path: Path,
    *,
    version: ReleaseVersion = STABLE,
    flags: RunFlags | None = None,
    work_dir: Path | None = None,
) -> BuildUnitRunner:
    source = SourceTree(root=make_source(tmp_path / "src"))
    return BuildUnitRunner(
        source=source,
        config=Config(),
        version=version,
        flags=flags or _flags(propagate=not version.is_debug),
        work_dir=work_dir or tmp_path / "work",
        base_env={"PATH": "/usr/bin"},
    )


@pytest.fixture(autouse=True)
def _build_tools_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(toolchain_mod, "which", installed_tools())


@pytest.fixture
def tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    fake = FakeTools()
    monkeypatch.setattr(build_unit_mod, "run_logged", fake)
    monkeypatch.setattr(toolchain_mod, "run_logged", fake)
    return fake


class TestUnitWorkspace:
    def test_layout(self, tmp_path: Path) -> None:
        ws = UnitWorkspace.for_target(tmp_path, _target("linux-x64-cpu"))
        assert ws.root == tmp_path / "linux-x64-cpu"
        assert ws.src == ws.root / "src"
        assert ws.target_dir == ws.root / "target"
        assert ws.log("compile") == ws.root / "logs" / "compile.log"

    def test_units_do_not_share_directories(self, tmp_path: Path) -> None:
        roots = {UnitWorkspace.for_target(tmp_path, t).root for t in DEFAULT_CATALOG}
        assert len(roots) == len(DEFAULT_CATALOG)


class TestCommands:
    def test_version_commands(self, tmp_path: Path) -> None:
        runner = _runner(tmp_path)
        cmds = runner.version_commands(_target("linux-x64-gpu"))
        assert cmds == [
            [
                "cargo",
                "set-version",
                "0.14.0",
                "--exclude",
                "voicevox_core_python_api",
                "--exclude",
                "xtask",
            ],
            ["cargo", "set-version", "0.14.0+cuda", "-p", "voicevox_core_python_api"],
        ]

    def test_compile_command(self, tmp_path: Path) -> None:
        cmd = _runner(tmp_path).compile_command(_target("windows-x64-directml"))
        assert cmd[:4] == ["cargo", "build", "-p", "voicevox_core_c_api"]
        assert cmd[cmd.index("--features") + 1] == "directml,"
        assert cmd[cmd.index("--target") + 1] == "x86_64-pc-windows-msvc"
        assert cmd[-1] == "--release"

    def test_header_command(self, tmp_path: Path) -> None:
        cmd = _runner(tmp_path).header_command(tmp_path / "voicevox_core.h")
        assert cmd == [
            "cbindgen",
            "--crate",
            "voicevox_core_c_api",
            "-o",
            str(tmp_path / "voicevox_core.h"),
        ]

    def test_package_command_writes_into_unit(self, tmp_path: Path) -> None:
        runner = _runner(tmp_path)
        target = _target("osx-x64-cpu")
        ws = runner.workspace(target)
        cmd = runner.package_command(target, ws)
        assert cmd[:2] == ["maturin", "build"]
        assert cmd[cmd.index("--manifest-path") + 1] == str(
            ws.src / "crates/voicevox_core_python_api/Cargo.toml"
        )
        assert cmd[cmd.index("--out") + 1] == str(ws.wheels_dir)


class TestBuild:
    def test_success(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        target = _target("linux-x64-cpu")

        result = runner.build(target, console=MockConsole())

        assert isinstance(result, Ok)
        output = result.value
        ws = runner.workspace(target)
        assert output.header == ws.root / "voicevox_core.h"
        assert output.release_dir == ws.target_dir / "x86_64-unknown-linux-gnu" / "release"
        assert output.wheel.parent == ws.wheels_dir
        assert [c[:2] for c in tools.calls] == [
            ["rustup", "target"],
            ["cargo", "set-version"],
            ["cargo", "set-version"],
            ["cbindgen", "--crate"],
            ["cargo", "build"],
            ["maturin", "build"],
        ]

    def test_private_source_copy(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        target = _target("linux-x64-cpu")
        assert isinstance(runner.build(target, console=MockConsole()), Ok)
        src = runner.workspace(target).src
        assert (src / "Cargo.toml").is_file()
        assert not (src / "target").exists()

    def test_work_dir_inside_source_is_not_copied(
        self, tmp_path: Path, tools: FakeTools
    ) -> None:
        runner = _runner(tmp_path, work_dir=tmp_path / "src" / ".vvrelease")
        target = _target("linux-x64-cpu")
        assert isinstance(runner.build(target, console=MockConsole()), Ok)
        assert not (runner.workspace(target).src / ".vvrelease").exists()

    def test_environment(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        target = _target("linux-x64-gpu")
        assert isinstance(runner.build(target, console=MockConsole()), Ok)
        env = tools.envs[-1]
        assert env["CARGO_TARGET_DIR"] == str(runner.workspace(target).target_dir)
        assert env["ORT_USE_CUDA"] == "true"
        assert env["PATH"] == "/usr/bin"

    def test_cpu_target_disables_cuda(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        assert isinstance(runner.build(_target("linux-x64-cpu"), console=MockConsole()), Ok)
        assert tools.envs[-1]["ORT_USE_CUDA"] == "false"

    def test_debug_leaves_manifests_untouched(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path, version=ReleaseVersion.debug())
        console = MockConsole()
        assert isinstance(runner.build(_target("linux-x64-cpu"), console=console), Ok)
        assert not any(c[:2] == ["cargo", "set-version"] for c in tools.calls)
        assert console.find("DEBUG")

    def test_cross_compiler_installed_before_rust_target(
        self, tmp_path: Path, tools: FakeTools
    ) -> None:
        runner = _runner(tmp_path)
        assert isinstance(runner.build(_target("linux-arm64-cpu"), console=MockConsole()), Ok)
        programs = [c[c.index("apt-get")] if "apt-get" in c else c[0] for c in tools.calls[:3]]
        assert programs == ["apt-get", "apt-get", "rustup"]

    def test_compile_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeTools(fail_when=lambda cmd: cmd[:2] == ["cargo", "build"])
        monkeypatch.setattr(build_unit_mod, "run_logged", fake)
        monkeypatch.setattr(toolchain_mod, "run_logged", fake)
        runner = _runner(tmp_path)

        result = runner.build(_target("linux-x64-cpu"), console=MockConsole())

        assert isinstance(result, Err)
        assert result.error.stage == "compile"
        assert result.error.hint is not None
        assert "compile.log" in result.error.hint
        assert not any(c[0] == "maturin" for c in fake.calls)

    def test_toolchain_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeTools(fail_when=lambda cmd: cmd[0] == "rustup")
        monkeypatch.setattr(build_unit_mod, "run_logged", fake)
        monkeypatch.setattr(toolchain_mod, "run_logged", fake)

        result = _runner(tmp_path).build(_target("linux-x64-cpu"), console=MockConsole())

        assert isinstance(result, Err)
        assert result.error.stage == "toolchain"
        assert len(fake.calls) == 1

    def test_missing_header(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeTools()

        def no_header(
            cmd: list[str],
            cwd: Path,
            log_path: Path,
            env: dict[str, str] | None = None,
            *,
            timeout: float | None = None,
        ):
            if cmd[0] == "cbindgen":
                return Ok(None)
            return fake(cmd, cwd, log_path, env, timeout=timeout)

        monkeypatch.setattr(build_unit_mod, "run_logged", no_header)
        monkeypatch.setattr(toolchain_mod, "run_logged", fake)

        result = _runner(tmp_path).build(_target("linux-x64-cpu"), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.stage == "header"

    def test_rebuild_clears_previous_logs(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        target = _target("linux-x64-cpu")
        assert isinstance(runner.build(target, console=MockConsole()), Ok)
        assert isinstance(runner.build(target, console=MockConsole()), Ok)
        log = runner.workspace(target).log("compile").read_text(encoding="utf-8")
        assert log.count("$ cargo build") == 1

    def test_relative_work_dir(
        self, tmp_path: Path, tools: FakeTools, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        runner = _runner(tmp_path, work_dir=Path("work"))
        target = _target("linux-x64-cpu")

        result = runner.build(target, console=MockConsole())

        assert isinstance(result, Ok)
        output = result.value
        assert output.header.is_absolute()
        assert output.header.is_file()
        assert output.wheel.is_file()
        assert output.release_dir.is_absolute()
        assert output.release_dir.is_dir()

    def test_wheel_carries_local_version(self, tmp_path: Path, tools: FakeTools) -> None:
        runner = _runner(tmp_path)
        result = runner.build(_target("linux-x64-gpu"), console=MockConsole())
        assert isinstance(result, Ok)
        assert result.value.wheel.name.startswith("voicevox_core-0.14.0+cuda-")

    def test_missing_build_tool_fails_toolchain_stage(
        self, tmp_path: Path, tools: FakeTools, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(toolchain_mod, "which", installed_tools({"maturin", "sudo"}))

        result = _runner(tmp_path).build(_target("linux-x64-cpu"), console=MockConsole())

        assert isinstance(result, Err)
        assert result.error.stage == "toolchain"
        assert "cbindgen" in result.error.message
        assert tools.calls == []
