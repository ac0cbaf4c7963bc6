"""Run trigger, secrets, and the run-wide flags derived from them.

The CI event decides where the version comes from and whether signing was
asked for; the secrets decide whether publishing and signing can happen.
``RunFlags`` folds both into booleans once, at run start.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from vvrelease.core.structured import as_str_dict, get_bool, get_str, get_table
from vvrelease.release.targets import BuildTarget
from vvrelease.release.version import ReleaseVersion

__all__ = [
    "RunFlags",
    "Secrets",
    "Trigger",
    "TriggerEvent",
    "load_github_trigger",
]

TriggerEvent = Literal["manual", "release", "other"]

# Publishing stays off unless the gate secret is explicitly "0".
_PUBLISH_GATE_DEFAULT = "1"


@dataclass(frozen=True, slots=True)
class Trigger:
    event: TriggerEvent = "other"
    release_tag: str | None = None
    version_input: str | None = None
    code_signing: bool = False

    @classmethod
    def manual(cls, version: str | None, *, code_signing: bool = False) -> Trigger:
        return cls(event="manual", version_input=version, code_signing=code_signing)

    @classmethod
    def release(cls, tag: str) -> Trigger:
        return cls(event="release", release_tag=tag)

    @classmethod
    def from_github_event(cls, event_name: str | None, payload: Mapping[str, object]) -> Trigger:
        """Build a trigger from a GitHub Actions event name and payload.

        Only ``release`` events contribute a tag and only ``workflow_dispatch``
        contributes an operator version and the code-signing flag.
        """
        if event_name == "release":
            release = get_table(payload, "release") or {}
            return cls(event="release", release_tag=get_str(release, "tag_name"))
        if event_name == "workflow_dispatch":
            inputs = get_table(payload, "inputs") or {}
            return cls(
                event="manual",
                version_input=get_str(inputs, "version"),
                code_signing=get_bool(inputs, "code_signing") or False,
            )
        return cls(event="other")


def load_github_trigger(env: Mapping[str, str] | None = None) -> Trigger:
    """Read the trigger from ``GITHUB_EVENT_NAME`` / ``GITHUB_EVENT_PATH``.

    An absent or unreadable payload is treated as an empty one.
    """
    env = os.environ if env is None else env
    event_name = env.get("GITHUB_EVENT_NAME")
    payload: Mapping[str, object] = {}
    event_path = env.get("GITHUB_EVENT_PATH")
    if event_path:
        try:
            obj: object = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            obj = None
        payload = as_str_dict(obj) or {}
    return Trigger.from_github_event(event_name, payload)


@dataclass(frozen=True, slots=True)
class Secrets:
    cert_base64: str | None = None
    cert_password: str | None = None
    skip_uploading: str = _PUBLISH_GATE_DEFAULT

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Secrets:
        env = os.environ if env is None else env
        return cls(
            cert_base64=env.get("CERT_BASE64") or None,
            cert_password=env.get("CERT_PASSWORD") or None,
            skip_uploading=env.get("SKIP_UPLOADING_RELEASE_ASSET") or _PUBLISH_GATE_DEFAULT,
        )

    @property
    def publish_enabled(self) -> bool:
        return self.skip_uploading.strip() == "0"

    @property
    def has_signing_certificate(self) -> bool:
        return bool(self.cert_base64) and bool(self.cert_password)

    def __repr__(self) -> str:
        # Never print secret material.
        return (
            f"Secrets(cert_base64={'***' if self.cert_base64 else None}, "
            f"cert_password={'***' if self.cert_password else None}, "
            f"skip_uploading={self.skip_uploading!r})"
        )


@dataclass(frozen=True, slots=True)
class RunFlags:
    """Run-wide switches, computed once from the version, trigger and secrets."""

    propagate_version: bool
    publish: bool
    sign: bool

    @classmethod
    def evaluate(cls, version: ReleaseVersion, trigger: Trigger, secrets: Secrets) -> RunFlags:
        return cls(
            propagate_version=not version.is_debug,
            publish=not version.is_debug and secrets.publish_enabled,
            sign=trigger.code_signing,
        )

    def sign_target(self, target: BuildTarget) -> bool:
        return self.sign and target.os.is_windows
