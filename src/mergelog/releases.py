"""Release lookup and the revision range a changelog section covers."""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from packaging.version import InvalidVersion, Version

from .errors import InvalidStateError, NotFoundError
from .github import Release
from .utils import log_debug

DEVELOP_BRANCH = "develop"
STAGING_BRANCH = "staging"

BranchPredicate = Callable[[str], bool]

_PRERELEASE_IDENTIFIER = re.compile(r"^[0-9A-Za-z-]+$")


class BranchMode(Enum):
    """How the "to" endpoint of every project in a walk is chosen."""

    EXACT = "exact"  # released versions: use the pinned version as-is
    RELEASE = "release"  # release branch cut: compare against its tip
    DEVELOP = "develop"  # no release branch yet: compare against develop


@dataclass(frozen=True)
class ReleaseRange:
    """Endpoints for one changelog section and the mode subprojects follow."""

    from_version: str
    to_version: str
    mode: BranchMode


def parse_version(value: str) -> Version:
    """Parse a PEP 440 version, tolerating a leading ``v``."""
    try:
        return Version(value)
    except InvalidVersion as exc:
        raise InvalidStateError(f"'{value}' is not a valid version.") from exc


@functools.total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """A semantic version: a release number plus dot-separated prerelease identifiers.

    Ordering follows semver rather than PEP 440, so ``1.2.0-1`` is a
    prerelease of ``1.2.0`` and identifiers such as ``next.1`` are accepted.
    """

    release: Version
    prerelease: tuple[str, ...] = ()

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def base_version(self) -> str:
        return self.release.base_version

    def _key(self) -> tuple[Any, ...]:
        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part) for part in self.prerelease
        )
        # A release sorts after all of its prereleases.
        return (self.release, not self.prerelease, identifiers)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()


def parse_semver(value: str) -> SemanticVersion:
    """Parse ``1.2.0``, ``v1.2.0-rc.1`` or ``1.2.0rc1`` into a SemanticVersion."""
    text = value.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    text = text.split("+", 1)[0]
    base, separator, suffix = text.partition("-")
    parsed = parse_version(base)
    if separator:
        identifiers = tuple(suffix.split("."))
        if parsed.pre or parsed.post is not None or parsed.dev is not None or not all(
            _PRERELEASE_IDENTIFIER.match(part) for part in identifiers
        ):
            raise InvalidStateError(f"'{value}' is not a valid version.")
        return SemanticVersion(Version(parsed.base_version), identifiers)
    if parsed.pre:
        letters, number = parsed.pre
        return SemanticVersion(Version(parsed.base_version), (letters, str(number)))
    return SemanticVersion(Version(parsed.base_version))


def is_prerelease(value: str) -> bool:
    return parse_semver(value).is_prerelease


def release_branch_name(version: str) -> str:
    parsed = parse_semver(version).release
    major, minor, micro = (list(parsed.release) + [0, 0, 0])[:3]
    return f"release-v{major}.{minor}.{micro}"


def releases_contains(releases: Sequence[Release], target: str) -> bool:
    return any(release.name == target for release in releases)


def latest_release(releases: Sequence[Release], include_prereleases: bool) -> Release:
    """Return the newest release, relying on the list being newest first."""
    for release in releases:
        if include_prereleases or not release.prerelease:
            return release
    kind = "release" if include_prereleases else "non-prerelease release"
    raise NotFoundError(f"Couldn't find any {kind}.")


def release_before(
    releases: Sequence[Release], target: str, include_prereleases: bool
) -> Release:
    """Return the nearest release listed after ``target`` (i.e. older than it)."""
    found = False
    for release in releases:
        if release.name == target:
            found = True
        elif found and (include_prereleases or not release.prerelease):
            return release
    if not found:
        raise NotFoundError(f"Couldn't find release {target}.")
    raise NotFoundError(f"Couldn't find release before {target}.")


def release_endpoint(version: str, has_branch: BranchPredicate) -> Optional[str]:
    """Return the branch that holds the unreleased ``version``, if one exists."""
    branch = release_branch_name(version)
    if has_branch(branch):
        return branch
    if has_branch(STAGING_BRANCH):
        return STAGING_BRANCH
    return None


def endpoint_for_mode(
    version: str, mode: BranchMode, has_branch: Optional[BranchPredicate] = None
) -> str:
    """Return the revision to compare up to for ``version`` under ``mode``.

    ``EXACT`` yields the release tag, ``DEVELOP`` the develop branch, and
    ``RELEASE`` the release (or staging) branch. Without ``has_branch`` the
    conventional release branch name is assumed to exist.
    """
    if mode is BranchMode.DEVELOP:
        return DEVELOP_BRANCH
    if mode is BranchMode.RELEASE:
        if has_branch is None:
            return release_branch_name(version)
        return release_endpoint(version, has_branch) or release_branch_name(version)
    return exact_tag(version)


def exact_tag(version: str) -> str:
    """Return the tag for an exact version pin such as ``1.2.3``."""
    if not version or not version[0].isdigit():
        raise InvalidStateError(f"Version {version} is not exact.")
    return f"v{version}"


def resolve_range(
    target: Optional[str],
    releases: Sequence[Release],
    has_branch: BranchPredicate,
) -> ReleaseRange:
    """Decide which revisions the changelog section for ``target`` covers."""
    if target is None:
        return ReleaseRange(
            from_version=latest_release(releases, include_prereleases=False).name,
            to_version=DEVELOP_BRANCH,
            mode=BranchMode.DEVELOP,
        )

    target_is_prerelease = target != DEVELOP_BRANCH and is_prerelease(target)
    if releases_contains(releases, target):
        # Only the most recent page of releases is known, so older
        # releases cannot be found here.
        log_debug(f"found existing release for {target}")
        return ReleaseRange(
            from_version=release_before(releases, target, target_is_prerelease).name,
            to_version=target,
            mode=BranchMode.EXACT,
        )

    branch = release_endpoint(target, has_branch) if target != DEVELOP_BRANCH else None
    if branch is not None:
        log_debug(f"found branch {branch} for {target}")
        return ReleaseRange(
            from_version=latest_release(releases, target_is_prerelease).name,
            to_version=branch,
            mode=BranchMode.RELEASE,
        )

    log_debug(f"found neither release nor branch for {target}")
    return ReleaseRange(
        from_version=latest_release(releases, target_is_prerelease).name,
        to_version=DEVELOP_BRANCH,
        mode=BranchMode.DEVELOP,
    )


def suggest_bump(breaking: int, features: int) -> str:
    """Return the semantic version bump a set of changes calls for."""
    if breaking:
        return "major"
    if features:
        return "minor"
    return "patch"


def bump_version(base: str, bump: str) -> str:
    parsed = parse_semver(base)
    major, minor, micro = (list(parsed.release.release) + [0, 0, 0])[:3]
    if bump == "major":
        major += 1
        minor = 0
        micro = 0
    elif bump == "minor":
        minor += 1
        micro = 0
    elif not parsed.is_prerelease:
        micro += 1
    return f"{major}.{minor}.{micro}"
