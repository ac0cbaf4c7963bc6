"""Release publication through the GitHub CLI.

Assets go to the release whose tag is the resolved version, created as a
prerelease on first use. Uploads use ``--clobber`` so re-publishing a file
of the same name replaces it instead of failing, and uploads of different
files to one release may run concurrently.

Nothing is sent when publishing is disabled (DEBUG version or closed gate).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from time import sleep
from typing import Literal

from vvrelease.core.result import Err, Ok, Result
from vvrelease.output.console import ConsoleProtocol, Style
from vvrelease.platform.process import ProcessError
from vvrelease.platform.process import run as run_process
from vvrelease.release.errors import PublishError
from vvrelease.release.model import ReleaseAsset
from vvrelease.release.trigger import RunFlags
from vvrelease.release.version import ReleaseVersion
from vvrelease.services.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

__all__ = ["PublishOutcome", "ReleasePublisher", "downloader_assets"]


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    return "release not found" in f"{error.stderr}\n{error.stdout}".lower()


def _is_already_exists(error: ProcessError) -> bool:
    return "already exists" in f"{error.stderr}\n{error.stdout}".lower()


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    filename: str
    status: Literal["uploaded", "skipped"]
    reason: str | None = None


def downloader_assets(
    downloads_dir: Path, version: ReleaseVersion
) -> Result[list[ReleaseAsset], PublishError]:
    """The auxiliary downloader files, in sorted order."""
    if not downloads_dir.is_dir():
        return Err(
            PublishError(
                asset=downloads_dir.name,
                message=f"downloader directory not found: {downloads_dir}",
            )
        )
    return Ok(
        [
            ReleaseAsset(path=p, kind="downloader", version=version)
            for p in sorted(downloads_dir.iterdir())
            if p.is_file()
        ]
    )


class ReleasePublisher:
    """Uploads release assets; one instance is shared by all units of a run."""

    def __init__(
        self,
        *,
        cwd: Path,
        console: ConsoleProtocol,
        repo: str | None = None,
        target_commitish: str | None = None,
    ) -> None:
        self._cwd = cwd
        self._console = console
        self._repo = repo
        self._target_commitish = target_commitish
        self._lock = threading.Lock()
        self._ensured: set[str] = set()

    def publish(
        self, asset: ReleaseAsset, flags: RunFlags
    ) -> Result[PublishOutcome, PublishError]:
        if asset.version.is_debug:
            return Ok(PublishOutcome(asset.filename, "skipped", "DEBUG version"))
        if not flags.publish:
            return Ok(PublishOutcome(asset.filename, "skipped", "publishing disabled"))

        if not asset.path.is_file():
            return Err(PublishError(asset=asset.filename, message=f"file not found: {asset.path}"))

        tag = asset.version.value
        ensured = self._ensure_release(tag, asset.filename)
        if isinstance(ensured, Err):
            return ensured

        cmd = ["gh", "release", "upload", tag, str(asset.path), "--clobber", *self._repo_args()]
        self._console.print(f"upload {asset.filename} -> {tag}", Style.DIM)
        result = run_process(cmd, cwd=self._cwd, timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                PublishError(
                    asset=asset.filename,
                    message=f"upload failed: {result.error}",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(PublishOutcome(asset.filename, "uploaded"))

    def publish_downloader(
        self, downloads_dir: Path, version: ReleaseVersion, flags: RunFlags
    ) -> tuple[list[PublishOutcome], list[PublishError]]:
        """Upload the auxiliary downloader files, independent of any build."""
        if version.is_debug or not flags.publish:
            reason = "DEBUG version" if version.is_debug else "publishing disabled"
            return [PublishOutcome(downloads_dir.name, "skipped", reason)], []

        assets = downloader_assets(downloads_dir, version)
        if isinstance(assets, Err):
            return [], [assets.error]

        outcomes: list[PublishOutcome] = []
        errors: list[PublishError] = []
        for asset in assets.value:
            match self.publish(asset, flags):
                case Ok(outcome):
                    outcomes.append(outcome)
                case Err(error):
                    errors.append(error)
        return outcomes, errors

    def _repo_args(self) -> list[str]:
        return ["--repo", self._repo] if self._repo else []

    def _ensure_release(self, tag: str, filename: str) -> Result[None, PublishError]:
        # Serialised so concurrent units create the release once.
        with self._lock:
            if tag in self._ensured:
                return Ok(None)

            viewed = self._view_release(tag)
            if isinstance(viewed, Ok):
                self._ensured.add(tag)
                return Ok(None)
            if not _is_not_found(viewed.error):
                return Err(
                    PublishError(
                        asset=filename,
                        message=f"failed to query release {tag}",
                        hint=viewed.error.stderr.strip() or None,
                    )
                )

            cmd = [
                "gh",
                "release",
                "create",
                tag,
                "--prerelease",
                "--title",
                tag,
                "--notes",
                "",
                *self._repo_args(),
            ]
            if self._target_commitish:
                cmd += ["--target", self._target_commitish]
            self._console.print(f"create prerelease {tag}", Style.DIM)
            created = run_process(cmd, cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
            # Another publisher (e.g. a sibling job) may have won the race.
            if isinstance(created, Err) and not _is_already_exists(created.error):
                return Err(
                    PublishError(
                        asset=filename,
                        message=f"failed to create release {tag}",
                        hint=created.error.stderr.strip() or None,
                    )
                )

            self._ensured.add(tag)
            return Ok(None)

    def _view_release(self, tag: str) -> Result[str, ProcessError]:
        cmd = ["gh", "release", "view", tag, "--json", "tagName", *self._repo_args()]
        attempts = max(1, GH_READ_RETRY_ATTEMPTS)
        result: Result[str, ProcessError] = Err(ProcessError(tuple(cmd), -1, "", ""))
        for attempt in range(attempts):
            result = run_process(cmd, cwd=self._cwd, timeout=GH_TIMEOUT_SECONDS)
            if isinstance(result, Ok):
                return result
            if attempt < attempts - 1 and _is_transient_gh_error(result.error):
                sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
                continue
            return result
        return result
