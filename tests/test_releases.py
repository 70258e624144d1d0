"""Tests for release lookup and range resolution."""

from __future__ import annotations

import pytest

from mergelog.errors import InvalidStateError, NotFoundError
from mergelog.github import Release
from mergelog.releases import (
    BranchMode,
    ReleaseRange,
    bump_version,
    endpoint_for_mode,
    latest_release,
    parse_semver,
    release_before,
    release_branch_name,
    resolve_range,
    suggest_bump,
)

RELEASES = [
    Release("v1.3.0-rc.1", prerelease=True),
    Release("v1.2.0"),
    Release("v1.2.0-rc.2", prerelease=True),
    Release("v1.2.0-rc.1", prerelease=True),
    Release("v1.1.0"),
]


def no_branches(branch: str) -> bool:
    return False


def test_latest_release_respects_prerelease_flag() -> None:
    assert latest_release(RELEASES, include_prereleases=True).name == "v1.3.0-rc.1"
    assert latest_release(RELEASES, include_prereleases=False).name == "v1.2.0"


def test_latest_release_without_final_release_fails() -> None:
    with pytest.raises(NotFoundError):
        latest_release([Release("v0.1.0-rc.1", prerelease=True)], include_prereleases=False)


def test_release_before_skips_prereleases_for_final_target() -> None:
    assert release_before(RELEASES, "v1.2.0", include_prereleases=False).name == "v1.1.0"
    assert release_before(RELEASES, "v1.2.0-rc.2", include_prereleases=True).name == "v1.2.0-rc.1"


def test_release_before_reports_missing_target_and_predecessor() -> None:
    with pytest.raises(NotFoundError, match="Couldn't find release v9.0.0"):
        release_before(RELEASES, "v9.0.0", include_prereleases=False)
    with pytest.raises(NotFoundError, match="before v1.1.0"):
        release_before(RELEASES, "v1.1.0", include_prereleases=False)


def test_resolve_existing_release_is_exact() -> None:
    assert resolve_range("v1.2.0", RELEASES, no_branches) == ReleaseRange(
        "v1.1.0", "v1.2.0", BranchMode.EXACT
    )


def test_resolve_existing_prerelease_compares_against_any_release() -> None:
    assert resolve_range("v1.3.0-rc.1", RELEASES, no_branches) == ReleaseRange(
        "v1.2.0", "v1.3.0-rc.1", BranchMode.EXACT
    )


def test_resolve_uses_release_branch_when_cut() -> None:
    branches = {"release-v1.3.0", "staging"}

    result = resolve_range("v1.3.0", RELEASES, branches.__contains__)

    assert result == ReleaseRange("v1.2.0", "release-v1.3.0", BranchMode.RELEASE)


def test_resolve_prerelease_on_release_branch_includes_prereleases() -> None:
    result = resolve_range("v1.3.0-rc.2", RELEASES, {"release-v1.3.0"}.__contains__)

    assert result == ReleaseRange("v1.3.0-rc.1", "release-v1.3.0", BranchMode.RELEASE)


def test_resolve_falls_back_to_staging_branch() -> None:
    result = resolve_range("v1.3.0", RELEASES, {"staging"}.__contains__)

    assert result == ReleaseRange("v1.2.0", "staging", BranchMode.RELEASE)


def test_resolve_future_release_uses_develop() -> None:
    assert resolve_range("v1.3.0", RELEASES, no_branches) == ReleaseRange(
        "v1.2.0", "develop", BranchMode.DEVELOP
    )


def test_resolve_without_target_compares_latest_final_to_develop() -> None:
    assert resolve_range(None, RELEASES, no_branches) == ReleaseRange(
        "v1.2.0", "develop", BranchMode.DEVELOP
    )


def test_resolve_without_any_release_fails() -> None:
    with pytest.raises(NotFoundError):
        resolve_range("v0.1.0", [], no_branches)


@pytest.mark.parametrize(
    ("version", "mode", "expected"),
    [
        ("1.4.2", BranchMode.EXACT, "v1.4.2"),
        ("1.4.2", BranchMode.RELEASE, "release-v1.4.2"),
        ("1.4.2-rc.1", BranchMode.RELEASE, "release-v1.4.2"),
        ("1.4.2", BranchMode.DEVELOP, "develop"),
    ],
)
def test_endpoint_for_mode(version: str, mode: BranchMode, expected: str) -> None:
    assert endpoint_for_mode(version, mode) == expected


def test_endpoint_for_release_mode_prefers_existing_branches() -> None:
    assert endpoint_for_mode("1.4.2", BranchMode.RELEASE, {"staging"}.__contains__) == "staging"
    assert endpoint_for_mode("1.4.2", BranchMode.RELEASE, no_branches) == "release-v1.4.2"


def test_endpoint_for_exact_mode_rejects_ranges() -> None:
    with pytest.raises(InvalidStateError, match="not exact"):
        endpoint_for_mode("^1.4.2", BranchMode.EXACT)


def test_release_branch_name_pads_short_versions() -> None:
    assert release_branch_name("v2") == "release-v2.0.0"


@pytest.mark.parametrize(
    ("breaking", "features", "bump", "expected"),
    [
        (1, 3, "major", "2.0.0"),
        (0, 3, "minor", "1.3.0"),
        (0, 0, "patch", "1.2.1"),
    ],
)
def test_suggested_bump(breaking: int, features: int, bump: str, expected: str) -> None:
    assert suggest_bump(breaking, features) == bump
    assert bump_version("v1.2.0", bump) == expected


def test_semantic_versions_order_prereleases_before_their_release() -> None:
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
        "1.0.1-1",
        "1.0.1",
    ]

    parsed = [parse_semver(value) for value in ordered]

    assert sorted(reversed(parsed)) == parsed


def test_semantic_version_accepts_both_prerelease_spellings() -> None:
    assert parse_semver("v1.2.0-rc.1") == parse_semver("1.2.0rc1")
    assert parse_semver("1.2.0-1").is_prerelease
    assert parse_semver("1.2.0-next.1").base_version == "1.2.0"
    assert not parse_semver("1.2.0+build.5").is_prerelease


@pytest.mark.parametrize("value", ["develop", "1.2.0-", "1.2.0-rc..1", "1.2.0rc1-2"])
def test_semantic_version_rejects_malformed_values(value: str) -> None:
    with pytest.raises(InvalidStateError):
        parse_semver(value)


def test_numeric_prerelease_target_is_a_prerelease() -> None:
    releases = [Release("v1.2.0-1", prerelease=True), Release("v1.1.0")]

    assert resolve_range("v1.2.0-2", releases, {"release-v1.2.0"}.__contains__) == ReleaseRange(
        "v1.2.0-1", "release-v1.2.0", BranchMode.RELEASE
    )
