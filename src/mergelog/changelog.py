"""Rendering changelog sections and merging them into CHANGELOG.md."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from .changes import Change, ChangeType, IssueRef, get_change_notes
from .config import ProjectIdentity
from .errors import InvalidStateError
from .releases import SemanticVersion, parse_semver
from .utils import join_with_conjunction, log_debug

SECURITY_FIX_HEADER = "## \U0001F512 SECURITY FIXES"
BREAKING_CHANGE_HEADER = "## \U0001F6A8 BREAKING CHANGES"
FEATURE_CHANGE_HEADER = "## ✨ Features"
BUG_FIX_CHANGE_HEADER = "## \U0001F41B Bug Fixes"

TEMPORARY_SUFFIX = ".tmp"

_SECTION_HEADER_PATTERN = re.compile(r"^Changes in \[(?P<version>\d[^\]\s]*)\]")

# Only characters whose stray use breaks rendering of the rest of the file.
_MARKDOWN_SPECIAL_CHARACTERS = ("*",)


@dataclass(frozen=True)
class ChangelogEntry:
    """One version's section of a changelog, or the preamble when ``version`` is None."""

    version: Optional[str]
    text: str


def strip_version_prefix(version: str) -> str:
    if version.startswith(("v", "V")):
        return version[1:]
    return version


def _unescaped(text: str, index: int) -> bool:
    return index == 0 or text[index - 1] != "\\"


def sanitize_markdown(text: str) -> str:
    """Escape a special character when its unescaped occurrences are unpaired.

    This keeps a stray asterisk in one entry from italicizing the rest of the
    document. It is a heuristic, not a general Markdown sanitizer.
    """
    for special in _MARKDOWN_SPECIAL_CHARACTERS:
        count = sum(
            1 for index, char in enumerate(text) if char == special and _unescaped(text, index)
        )
        if count % 2:
            text = "".join(
                f"\\{char}" if char == special and _unescaped(text, index) else char
                for index, char in enumerate(text)
            )
    return text


def format_issue(issue: IssueRef, owner: str, repo: str) -> str:
    """Format an issue link, qualifying it when it lives in another repository."""
    url = f"https://github.com/{issue.owner}/{issue.repo}/issues/{issue.number}"
    if (issue.owner, issue.repo) == (owner, repo):
        return f"[\\#{issue.number}]({url})"
    return f"[{issue.owner}/{issue.repo}\\#{issue.number}]({url})"


def make_change_entry(change: Change, project: ProjectIdentity) -> str:
    """Render the bullet line for one change."""
    notes = get_change_notes(change, project.name) or ""
    line = f" * {sanitize_markdown(notes)}"
    line += f" ([\\#{change.pr.number}]({change.pr.html_url}))."

    if change.fixes:
        issues = [format_issue(issue, project.owner, project.repo) for issue in change.fixes]
        line += f" Fixes {join_with_conjunction(issues)}."

    if not change.pr.is_member:
        line += f" Contributed by [{change.pr.author_login}]({change.pr.author_url})."

    return line


def section_header(change: Change) -> Optional[str]:
    """Return the category heading a change is listed under, if any."""
    if change.security:
        return SECURITY_FIX_HEADER
    if change.breaking:
        return BREAKING_CHANGE_HEADER
    if change.change_type is ChangeType.FEATURE:
        return FEATURE_CHANGE_HEADER
    if change.change_type is ChangeType.BUGFIX:
        return BUG_FIX_CHANGE_HEADER
    return None


def render_section(
    changes: Iterable[Change],
    version: str,
    project: ProjectIdentity,
    *,
    today: Optional[date] = None,
) -> ChangelogEntry:
    """Render the changelog section for ``version`` from the included changes."""
    formatted_version = strip_version_prefix(version)
    parse_semver(formatted_version)
    released = today or date.today()

    header = (
        f"Changes in [{formatted_version}]"
        f"(https://github.com/{project.owner}/{project.repo}/releases/tag/v{formatted_version}) "
        f"({released.isoformat()})"
    )
    lines = [header, "=" * len(header), ""]

    grouped: dict[str, list[Change]] = {
        SECURITY_FIX_HEADER: [],
        BREAKING_CHANGE_HEADER: [],
        FEATURE_CHANGE_HEADER: [],
        BUG_FIX_CHANGE_HEADER: [],
    }
    for change in changes:
        if not change.should_include:
            continue
        heading = section_header(change)
        if heading is not None:
            grouped[heading].append(change)

    for heading, members in grouped.items():
        if not members:
            continue
        lines.append(heading)
        lines.extend(make_change_entry(change, project) for change in members)
        lines.append("")

    lines.append("")
    return ChangelogEntry(version=formatted_version, text="\n".join(lines))


def iter_changelog_entries(lines: Iterable[str]) -> Iterator[ChangelogEntry]:
    """Split a changelog into its preamble and per-version sections, verbatim."""
    version: Optional[str] = None
    buffer: list[str] = []
    for line in lines:
        content = line.rstrip("\r\n")
        match = _SECTION_HEADER_PATTERN.match(content)
        if match:
            if buffer:
                yield ChangelogEntry(version=version, text="".join(buffer))
            version = match.group("version")
            buffer = []
        buffer.append(line if line.endswith("\n") else line + "\n")
    if buffer:
        yield ChangelogEntry(version=version, text="".join(buffer))


def is_prerelease_for(version: SemanticVersion, for_version: SemanticVersion) -> bool:
    """Return True if ``version`` is a prerelease of the final ``for_version``."""
    return (
        version.is_prerelease
        and not for_version.is_prerelease
        and version.base_version == for_version.base_version
    )


def iter_reconciled(lines: Iterable[str], section: ChangelogEntry) -> Iterator[str]:
    """Yield the changelog text with ``section`` merged in exactly once.

    The document is expected newest first. A section for the same version is
    replaced, prereleases superseded by a final ``section`` are dropped,
    newer sections pass through, and ``section`` is written before the first
    older one.
    """
    if section.version is None:
        raise InvalidStateError("Cannot merge a changelog section without a version.")
    target = parse_semver(section.version)
    written = False

    for entry in iter_changelog_entries(lines):
        if entry.version is None:
            yield entry.text
            continue
        existing = parse_semver(entry.version)
        if existing == target:
            log_debug(f"found {entry.version}, which is the version being updated")
            if not written:
                yield section.text
                written = True
        elif is_prerelease_for(existing, target):
            log_debug(f"found {entry.version}, a prerelease of {section.version}: dropping it")
            if not written:
                yield section.text
                written = True
        elif existing < target:
            if not written:
                log_debug(f"writing {section.version} before older version {entry.version}")
                yield section.text
                written = True
            yield entry.text
        else:
            log_debug(f"found {entry.version}, which is newer than {section.version}")
            yield entry.text

    if not written:
        raise InvalidStateError(
            f"Couldn't place the section for {section.version}: "
            "the changelog has no version older than or equal to it."
        )


def reconcile(lines: Iterable[str], section: ChangelogEntry) -> str:
    """Return the changelog text with ``section`` merged in."""
    return "".join(iter_reconciled(lines, section))


def update_changelog(path: Path, section: ChangelogEntry) -> None:
    """Merge ``section`` into the changelog at ``path``.

    The new document is written to a temporary file next to ``path`` which
    then replaces the original, so a failure leaves the original untouched.
    """
    tmp_path = path.with_suffix(TEMPORARY_SUFFIX)
    try:
        # Untouched sections keep their original line endings.
        with path.open("r", encoding="utf-8", newline="") as source, tmp_path.open(
            "w", encoding="utf-8", newline=""
        ) as target:
            for chunk in iter_reconciled(source, section):
                target.write(chunk)
    except FileNotFoundError as exc:
        tmp_path.unlink(missing_ok=True)
        raise InvalidStateError(f"No changelog found at {path}.") from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    os.replace(tmp_path, path)
    log_debug(f"wrote {path}")


def merged_changes(changes_by_project: dict[str, list[Change]]) -> list[Change]:
    """Flatten per-project changes, keeping the visiting order."""
    merged: list[Change] = []
    for project_changes in changes_by_project.values():
        merged.extend(project_changes)
    return merged


def count_summary(changes: Sequence[Change]) -> tuple[int, int]:
    """Return the number of breaking changes and of features."""
    breaking = sum(1 for change in changes if change.breaking)
    features = sum(1 for change in changes if change.change_type is ChangeType.FEATURE)
    return breaking, features
