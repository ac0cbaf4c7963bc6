"""Bundle archiving.

The archive sits next to the bundle's parent directory and is named after
the bundle, so the asset name depends only on product, target and version.
Entries are stored under the bundle directory name, in sorted order.
"""

from __future__ import annotations

from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from vvrelease.core.result import Err, Ok, Result
from vvrelease.release.errors import BundleError

__all__ = ["archive_bundle", "archive_name", "archive_path"]


def archive_name(bundle_dir_name: str) -> str:
    return f"{bundle_dir_name}.zip"


def archive_path(bundle_dir: Path) -> Path:
    return bundle_dir.parent.parent / archive_name(bundle_dir.name)


def _collect(bundle_dir: Path) -> list[tuple[Path, str]]:
    out: list[tuple[Path, str]] = []
    for p in sorted(bundle_dir.rglob("*")):
        if p.is_dir():
            continue
        rel = p.relative_to(bundle_dir).as_posix()
        out.append((p, f"{bundle_dir.name}/{rel}"))
    return out


def archive_bundle(bundle_dir: Path) -> Result[Path, BundleError]:
    """Compress ``bundle_dir`` into ``<parent of parent>/<bundle name>.zip``."""
    if not bundle_dir.is_dir():
        return Err(BundleError(message=f"bundle directory missing: {bundle_dir}"))

    zip_path = archive_path(bundle_dir)
    tmp = zip_path.with_name(f".{zip_path.name}.tmp")
    try:
        zip_path.parent.mkdir(parents=True, exist_ok=True)
        # Build outputs can carry mtime=0, which ZIP cannot represent.
        with ZipFile(tmp, "w", compression=ZIP_DEFLATED, strict_timestamps=False) as zf:
            for src, arc in _collect(bundle_dir):
                zf.write(src, arcname=arc)
        tmp.replace(zip_path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        return Err(BundleError(message=f"failed to archive {bundle_dir.name}: {e}"))
    return Ok(zip_path)
