"""Release pipeline: one independent unit of work per target.

Each unit runs build -> assemble -> archive -> publish on a worker thread.
Units share only read-only state (version, flags, config). A failed unit is
recorded and its siblings keep going; the downloader publisher runs as one
more independent task. Publication is always a unit's last step, so an
interrupted run never leaves a half-built target uploaded.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from vvrelease.core.config import Config
from vvrelease.core.errors import ErrorCode
from vvrelease.core.result import Err, Ok
from vvrelease.core.source import SourceTree
from vvrelease.output.console import ConsoleProtocol, PrefixedConsole
from vvrelease.release.errors import AssemblyWarning, PublishError, UnitError
from vvrelease.release.model import ReleaseAsset
from vvrelease.release.targets import BuildTarget, TargetSelection
from vvrelease.release.trigger import RunFlags, Secrets
from vvrelease.release.version import ReleaseVersion
from vvrelease.services.archive import archive_bundle
from vvrelease.services.assembler import ArtifactAssembler
from vvrelease.services.build_unit import BuildUnitRunner
from vvrelease.services.publisher import PublishOutcome, ReleasePublisher

__all__ = ["ReleasePipeline", "RunReport", "TargetReport", "TargetStatus"]

TargetStatus = Literal["succeeded", "failed", "skipped"]


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


@dataclass(frozen=True, slots=True)
class TargetReport:
    artifact_name: str
    status: TargetStatus
    stage: str | None = None
    message: str | None = None
    archive: Path | None = None
    wheel: Path | None = None
    header_sha256: str | None = None
    published: tuple[PublishOutcome, ...] = ()
    publish_errors: tuple[PublishError, ...] = ()
    warnings: tuple[AssemblyWarning, ...] = ()

    @classmethod
    def skipped(cls, target: BuildTarget, reason: str) -> TargetReport:
        return cls(artifact_name=target.artifact_name, status="skipped", message=reason)

    @classmethod
    def failed(cls, target: BuildTarget, error: UnitError) -> TargetReport:
        return cls(
            artifact_name=target.artifact_name,
            status="failed",
            stage=error.stage,
            message=error.pretty(),
        )


@dataclass(frozen=True, slots=True)
class RunReport:
    version: ReleaseVersion
    targets: tuple[TargetReport, ...]
    downloader: tuple[PublishOutcome, ...] = ()
    downloader_errors: tuple[PublishError, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def failed_targets(self) -> tuple[TargetReport, ...]:
        return tuple(t for t in self.targets if t.status == "failed")

    @property
    def publish_errors(self) -> tuple[PublishError, ...]:
        errors: list[PublishError] = []
        for t in self.targets:
            errors.extend(t.publish_errors)
        errors.extend(self.downloader_errors)
        return tuple(errors)

    @property
    def ok(self) -> bool:
        return not self.failed_targets and not self.publish_errors

    @property
    def exit_code(self) -> ErrorCode:
        if self.failed_targets:
            return ErrorCode.BUILD_ERROR
        if self.publish_errors:
            return ErrorCode.NETWORK_ERROR
        return ErrorCode.OK


class ReleasePipeline:
    """Schedules the build units of one run."""

    def __init__(
        self,
        *,
        source: SourceTree,
        config: Config,
        console: ConsoleProtocol,
        version: ReleaseVersion,
        flags: RunFlags,
        secrets: Secrets,
        publisher: ReleasePublisher,
        work_dir: Path,
        runner: BuildUnitRunner | None = None,
        assembler: ArtifactAssembler | None = None,
    ) -> None:
        self._source = source
        self._config = config
        self._console = console
        self._version = version
        self._flags = flags
        self._publisher = publisher
        self._runner = runner or BuildUnitRunner(
            source=source,
            config=config,
            version=version,
            flags=flags,
            work_dir=work_dir,
        )
        self._assembler = assembler or ArtifactAssembler(
            source=source,
            config=config,
            flags=flags,
            secrets=secrets,
        )

    def run(
        self,
        selection: TargetSelection,
        *,
        max_workers: int | None = None,
        include_downloader: bool = True,
    ) -> RunReport:
        targets = selection.selected
        workers = max_workers or self._config.build.max_workers or max(1, len(targets))

        reports: dict[str, TargetReport] = {
            t.artifact_name: TargetReport.skipped(t, "not built on this host")
            for t in selection.skipped
        }
        downloader: tuple[list[PublishOutcome], list[PublishError]] = ([], [])

        # +1 so the downloader never waits behind the build units.
        with ThreadPoolExecutor(
            max_workers=workers + (1 if include_downloader else 0),
            thread_name_prefix="unit",
        ) as pool:
            try:
                futures: dict[str, Future[TargetReport]] = {
                    t.artifact_name: pool.submit(self.run_unit, t) for t in targets
                }
                downloader_future = (
                    pool.submit(
                        self._publisher.publish_downloader,
                        self._source.resolve(self._config.paths.downloads),
                        self._version,
                        self._flags,
                    )
                    if include_downloader
                    else None
                )
                for name, future in futures.items():
                    reports[name] = future.result()
                if downloader_future is not None:
                    downloader = downloader_future.result()
            except KeyboardInterrupt:
                self._console.warning("interrupted: cancelling pending units")
                pool.shutdown(wait=False, cancel_futures=True)
                raise

        ordered = tuple(
            reports[t.artifact_name]
            for t in (*selection.selected, *selection.skipped)
            if t.artifact_name in reports
        )
        return RunReport(
            version=self._version,
            targets=ordered,
            downloader=tuple(downloader[0]),
            downloader_errors=tuple(downloader[1]),
            notes=self._header_notes(ordered),
        )

    def run_unit(self, target: BuildTarget) -> TargetReport:
        """Build, assemble, archive and publish one target."""
        console = PrefixedConsole(self._console, target.artifact_name)
        console.info(f"start {target.triple} ({target.backend})")

        try:
            built = self._runner.build(target, console=console)
            if isinstance(built, Err):
                console.error(built.error.pretty())
                return TargetReport.failed(target, built.error)
            output = built.value

            ws = self._runner.workspace(target)
            bundled = self._assembler.assemble(
                output,
                self._version,
                out_dir=ws.artifact_dir,
                console=console,
                log_dir=ws.logs_dir,
            )
            if isinstance(bundled, Err):
                console.error(bundled.error.pretty())
                return TargetReport.failed(target, bundled.error)
            bundle = bundled.value

            archived = archive_bundle(bundle.path)
            if isinstance(archived, Err):
                console.error(archived.error.pretty())
                return TargetReport.failed(target, archived.error)
            archive = archived.value
            console.success(f"archive {archive.name}")
            header_sha256 = _sha256_file(output.header)
        except OSError as e:
            console.error(str(e))
            return TargetReport(
                artifact_name=target.artifact_name,
                status="failed",
                stage="io",
                message=str(e),
            )

        published: list[PublishOutcome] = []
        publish_errors: list[PublishError] = []
        for asset in (
            ReleaseAsset(path=archive, kind="archive", version=self._version),
            ReleaseAsset(path=output.wheel, kind="wheel", version=self._version),
        ):
            match self._publisher.publish(asset, self._flags):
                case Ok(outcome):
                    published.append(outcome)
                case Err(error):
                    console.error(error.pretty())
                    publish_errors.append(error)

        return TargetReport(
            artifact_name=target.artifact_name,
            status="succeeded",
            archive=archive,
            wheel=output.wheel,
            header_sha256=header_sha256,
            published=tuple(published),
            publish_errors=tuple(publish_errors),
            warnings=bundle.warnings,
        )

    @staticmethod
    def _header_notes(reports: tuple[TargetReport, ...]) -> tuple[str, ...]:
        digests = {r.header_sha256 for r in reports if r.header_sha256 is not None}
        if len(digests) > 1:
            return ("binding headers differ between targets built from the same sources",)
        return ()
