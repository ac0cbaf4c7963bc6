"""Tests for vvrelease.release.version module."""

from __future__ import annotations

import pytest

from vvrelease.core.result import Err, Ok
from vvrelease.release.trigger import Trigger
from vvrelease.release.version import DEBUG, ReleaseVersion, parse_version, resolve_version


class TestParseVersion:
    def test_stable(self) -> None:
        result = parse_version("0.14.0")
        assert result == Ok(ReleaseVersion(value="0.14.0", kind="stable"))

    def test_preview(self) -> None:
        result = parse_version("0.14.0-preview.3")
        assert isinstance(result, Ok)
        assert result.value.is_prerelease
        assert result.value.base == "0.14.0"

    def test_surrounding_whitespace(self) -> None:
        assert parse_version(" 0.14.0\n") == Ok(ReleaseVersion(value="0.14.0", kind="stable"))

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "v0.14.0",
            "0.14",
            "0.14.0.1",
            "01.2.3",
            "0.14.0-preview",
            "0.14.0-rc.1",
            "0.14.0-preview.01",
            "0.14.0+cpu",
            DEBUG,
        ],
    )
    def test_rejects(self, text: str) -> None:
        result = parse_version(text)
        assert isinstance(result, Err)
        assert "invalid version" in result.error.message
        assert result.error.hint is not None


class TestResolveVersion:
    def test_release_tag_wins(self) -> None:
        trigger = Trigger(event="release", release_tag="0.14.0", version_input="0.13.0")
        result = resolve_version(trigger)
        assert isinstance(result, Ok)
        assert result.value.value == "0.14.0"

    def test_manual_input(self) -> None:
        result = resolve_version(Trigger.manual("0.14.0-preview.3"))
        assert isinstance(result, Ok)
        assert result.value.value == "0.14.0-preview.3"

    def test_no_input_is_debug(self) -> None:
        result = resolve_version(Trigger())
        assert isinstance(result, Ok)
        assert result.value.value == "DEBUG"
        assert result.value.is_debug

    def test_blank_input_is_debug(self) -> None:
        result = resolve_version(Trigger.manual("   "))
        assert isinstance(result, Ok)
        assert result.value.is_debug

    def test_malformed_input_fails(self) -> None:
        assert isinstance(resolve_version(Trigger.manual("latest")), Err)

    def test_malformed_tag_fails(self) -> None:
        assert isinstance(resolve_version(Trigger.release("release-0.14")), Err)


class TestReleaseVersion:
    def test_with_local(self) -> None:
        version = ReleaseVersion(value="0.14.0", kind="stable")
        assert version.with_local("cpu") == "0.14.0+cpu"
        assert version.with_local("cuda") == "0.14.0+cuda"

    def test_debug(self) -> None:
        version = ReleaseVersion.debug()
        assert str(version) == DEBUG
        assert not version.is_prerelease
