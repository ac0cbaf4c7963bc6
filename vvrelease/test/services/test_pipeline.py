"""Tests for vvrelease.services.pipeline module."""

from __future__ import annotations

from pathlib import Path
from zipfile import ZipFile

import pytest

from vvrelease.core.config import Config
from vvrelease.core.errors import ErrorCode
from vvrelease.core.result import Ok, Result
from vvrelease.core.source import SourceTree
from vvrelease.output.console import MockConsole
from vvrelease.platform.process import ProcessError
from vvrelease.release.errors import PublishError
from vvrelease.release.targets import DEFAULT_CATALOG, TargetSelection
from vvrelease.release.trigger import RunFlags, Secrets
from vvrelease.release.version import ReleaseVersion
from vvrelease.services import build_unit as build_unit_mod
from vvrelease.services import publisher as publisher_mod
from vvrelease.services import toolchain as toolchain_mod
from vvrelease.services.pipeline import ReleasePipeline, RunReport, TargetReport
from vvrelease.services.publisher import PublishOutcome, ReleasePublisher

from ._fake_tools import FakeTools, installed_tools, make_source

STABLE = ReleaseVersion(value="0.14.0", kind="stable")
LINUX = tuple(t for t in DEFAULT_CATALOG if t.os.value == "linux")
OTHERS = tuple(t for t in DEFAULT_CATALOG if t.os.value != "linux")


class FakeGh:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def __call__(
        self, cmd: list[str], *, cwd: Path, timeout: float | None = None
    ) -> Result[str, ProcessError]:
        del cwd, timeout
        self.calls.append(cmd)
        return Ok("")

    def uploaded(self) -> list[str]:
        return sorted(Path(c[4]).name for c in self.calls if c[2] == "upload")


def _install(monkeypatch: pytest.MonkeyPatch, tools: FakeTools) -> FakeGh:
    gh = FakeGh()
    monkeypatch.setattr(build_unit_mod, "run_logged", tools)
    monkeypatch.setattr(toolchain_mod, "run_logged", tools)
    monkeypatch.setattr(toolchain_mod, "which", installed_tools())
    monkeypatch.setattr(publisher_mod, "run_process", gh)
    return gh


def _pipeline(
    tmp_path: Path,
    *,
    version: ReleaseVersion = STABLE,
    publish: bool = False,
    console: MockConsole | None = None,
) -> ReleasePipeline:
    source = SourceTree(root=make_source(tmp_path / "src"))
    console = console or MockConsole()
    flags = RunFlags(propagate_version=not version.is_debug, publish=publish, sign=False)
    return ReleasePipeline(
        source=source,
        config=Config(),
        console=console,
        version=version,
        flags=flags,
        secrets=Secrets(),
        publisher=ReleasePublisher(cwd=source.root, console=console),
        work_dir=tmp_path / "work",
    )


SELECTION = TargetSelection(selected=LINUX, skipped=OTHERS)


class TestRun:
    def test_all_targets_succeed(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _install(monkeypatch, FakeTools())

        report = _pipeline(tmp_path).run(SELECTION, max_workers=2)

        statuses = {t.artifact_name: t.status for t in report.targets}
        assert statuses["linux-x64-cpu"] == "succeeded"
        assert statuses["linux-x64-gpu"] == "succeeded"
        assert statuses["linux-arm64-cpu"] == "succeeded"
        assert statuses["osx-x64-cpu"] == "skipped"
        assert report.ok
        assert report.exit_code == ErrorCode.OK

    def test_report_keeps_catalog_order(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _install(monkeypatch, FakeTools())
        report = _pipeline(tmp_path).run(SELECTION, max_workers=3)
        assert [t.artifact_name for t in report.targets] == [
            t.artifact_name for t in (*LINUX, *OTHERS)
        ]

    def test_archives_are_named_per_target(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _install(monkeypatch, FakeTools())
        report = _pipeline(tmp_path).run(SELECTION)
        archives = sorted(t.archive.name for t in report.targets if t.archive is not None)
        assert archives == [
            "voicevox_core-linux-arm64-cpu-0.14.0.zip",
            "voicevox_core-linux-x64-cpu-0.14.0.zip",
            "voicevox_core-linux-x64-gpu-0.14.0.zip",
        ]
        cpu = next(t for t in report.targets if t.artifact_name == "linux-x64-cpu")
        assert cpu.archive is not None
        with ZipFile(cpu.archive) as zf:
            root = "voicevox_core-linux-x64-cpu-0.14.0/"
            assert zf.read(root + "VERSION") == b"0.14.0"
            assert root + "libonnxruntime.so" not in zf.namelist()

    def test_failed_target_does_not_stop_siblings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        tools = FakeTools(
            fail_when=lambda cmd: cmd[:2] == ["cargo", "build"]
            and "aarch64-unknown-linux-gnu" in cmd
        )
        _install(monkeypatch, tools)

        report = _pipeline(tmp_path).run(SELECTION)

        failed = report.failed_targets
        assert [t.artifact_name for t in failed] == ["linux-arm64-cpu"]
        assert failed[0].stage == "compile"
        assert failed[0].archive is None
        succeeded = [t for t in report.targets if t.status == "succeeded"]
        assert len(succeeded) == 2
        assert report.exit_code == ErrorCode.BUILD_ERROR

    def test_missing_product_library_is_never_archived(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _install(monkeypatch, FakeTools(omit_product_library=True))
        report = _pipeline(tmp_path).run(TargetSelection(selected=LINUX[:1], skipped=()))
        assert report.targets[0].status == "failed"
        assert report.targets[0].stage == "assemble"
        assert not list((tmp_path / "work").rglob("*.zip"))

    def test_nothing_published_when_disabled(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        gh = _install(monkeypatch, FakeTools())
        report = _pipeline(tmp_path, publish=False).run(SELECTION)
        assert gh.calls == []
        assert all(o.status == "skipped" for t in report.targets for o in t.published)
        assert [o.status for o in report.downloader] == ["skipped"]

    def test_debug_build_never_publishes(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        tools = FakeTools()
        gh = _install(monkeypatch, tools)
        report = _pipeline(tmp_path, version=ReleaseVersion.debug(), publish=False).run(SELECTION)
        assert report.ok
        assert gh.calls == []
        assert not any(c[:2] == ["cargo", "set-version"] for c in tools.calls)

    def test_publishes_archives_wheels_and_downloader(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        gh = _install(monkeypatch, FakeTools())
        report = _pipeline(tmp_path, publish=True).run(SELECTION)
        assert report.ok
        uploaded = gh.uploaded()
        assert "voicevox_core-linux-x64-gpu-0.14.0.zip" in uploaded
        assert "download.sh" in uploaded
        wheels = [n for n in uploaded if n.endswith(".whl")]
        assert len(set(wheels)) == 3
        assert any(n.startswith("voicevox_core-0.14.0+cpu-") for n in wheels)
        assert any(n.startswith("voicevox_core-0.14.0+cuda-") for n in wheels)
        assert len([c for c in gh.calls if c[2] == "view"]) == 1

    def test_without_downloader(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        gh = _install(monkeypatch, FakeTools())
        report = _pipeline(tmp_path, publish=True).run(SELECTION, include_downloader=False)
        assert report.downloader == ()
        assert "download.sh" not in gh.uploaded()

    def test_units_print_with_prefix(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _install(monkeypatch, FakeTools())
        console = MockConsole()
        _pipeline(tmp_path, console=console).run(SELECTION)
        assert console.find("linux-arm64-cpu: start aarch64-unknown-linux-gnu")


class TestRunReport:
    def _ok(self, name: str, digest: str = "aa") -> TargetReport:
        return TargetReport(artifact_name=name, status="succeeded", header_sha256=digest)

    def test_publish_failure_is_network_error(self) -> None:
        error = PublishError(asset="a.zip", message="upload failed")
        report = RunReport(
            version=STABLE,
            targets=(
                TargetReport(
                    artifact_name="linux-x64-cpu",
                    status="succeeded",
                    published=(PublishOutcome("a.whl", "uploaded"),),
                    publish_errors=(error,),
                ),
            ),
        )
        assert not report.ok
        assert report.publish_errors == (error,)
        assert report.exit_code == ErrorCode.NETWORK_ERROR

    def test_build_failure_outranks_publish_failure(self) -> None:
        report = RunReport(
            version=STABLE,
            targets=(
                TargetReport(artifact_name="a", status="failed", stage="compile"),
            ),
            downloader_errors=(PublishError(asset="download.sh", message="x"),),
        )
        assert report.exit_code == ErrorCode.BUILD_ERROR

    def test_skipped_targets_are_ok(self) -> None:
        report = RunReport(
            version=STABLE,
            targets=(TargetReport(artifact_name="osx-x64-cpu", status="skipped"),),
        )
        assert report.ok

    def test_header_mismatch_note(self) -> None:
        notes = ReleasePipeline._header_notes((self._ok("a", "aa"), self._ok("b", "bb")))
        assert len(notes) == 1
        assert ReleasePipeline._header_notes((self._ok("a"), self._ok("b"))) == ()
