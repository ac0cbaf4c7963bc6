"""Code signing of the bundled product library (Windows targets)."""

from __future__ import annotations

import os
from pathlib import Path

from vvrelease.core.result import Err, Ok, Result
from vvrelease.output.console import ConsoleProtocol, Style
from vvrelease.platform.process import format_command, run_logged
from vvrelease.release.errors import SigningError
from vvrelease.release.trigger import Secrets
from vvrelease.services.timeouts import SIGN_TIMEOUT_SECONDS

__all__ = ["sign_library"]


def sign_library(
    library: Path,
    *,
    script: Path,
    cwd: Path,
    secrets: Secrets,
    log_path: Path,
    console: ConsoleProtocol,
) -> Result[None, SigningError]:
    """Run the signing script against ``library``.

    Only called when signing was requested, so every failure here is fatal
    for the target.
    """
    if not secrets.has_signing_certificate:
        return Err(
            SigningError(
                message="code signing requested but the certificate is not configured",
                hint="set CERT_BASE64 and CERT_PASSWORD",
            )
        )
    if not script.is_file():
        return Err(SigningError(message=f"signing script not found: {script}"))

    env = dict(os.environ)
    env["CERT_BASE64"] = secrets.cert_base64 or ""
    env["CERT_PASSWORD"] = secrets.cert_password or ""

    cmd = ["bash", str(script), str(library)]
    console.print(format_command(cmd), Style.DIM)
    result = run_logged(cmd, cwd=cwd, env=env, log_path=log_path, timeout=SIGN_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            SigningError(
                message=f"signing failed for {library.name}: {result.error}",
                hint=f"see {log_path}",
            )
        )
    return Ok(None)
