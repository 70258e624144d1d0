"""Changelog previews for pull request descriptions."""

from __future__ import annotations

import re

from .changelog import (
    BREAKING_CHANGE_HEADER,
    BUG_FIX_CHANGE_HEADER,
    FEATURE_CHANGE_HEADER,
    make_change_entry,
)
from .changes import (
    BREAKING_CHANGE_LABEL,
    ChangeType,
    PullRequest,
    change_from_pull_request,
    change_type_labels,
    has_change_type_label,
)
from .config import ProjectIdentity

PREVIEW_START = "<!-- CHANGELOG_PREVIEW_START -->"
PREVIEW_END = "<!-- CHANGELOG_PREVIEW_END -->"

_PREVIEW_HEAD = f"{PREVIEW_START}\n---\n"
_PREVIEW_BLOCK_PATTERN = re.compile(
    re.escape(PREVIEW_START) + r".*" + re.escape(PREVIEW_END), re.DOTALL
)


def render_preview(pr: PullRequest, project: ProjectIdentity) -> str:
    """Describe how a pull request will appear in the changelog."""
    change = change_from_pull_request(pr)
    lines: list[str] = []

    if not has_change_type_label(pr):
        lines.append(
            "This PR currently has no changelog labels, so will not be included in changelogs."
        )
        lines.append("")
        labels = ", ".join(f"`{label}`" for label in change_type_labels())
        if pr.is_member:
            lines.append(
                f"Add one of: {labels} to indicate what type of change this is "
                f"plus `{BREAKING_CHANGE_LABEL}` if it's a breaking change."
            )
        else:
            lines.append(
                f"A reviewer can add one of: {labels} to indicate what type of change this is."
            )
    elif change.change_type is ChangeType.TASK:
        lines.append(
            "This change is marked as an *internal change* (Task), "
            "so will not be included in the changelog."
        )
    elif change.notes is None:
        lines.append("This change has no change notes, so will not be included in the changelog.")
    else:
        lines.append("Here's what your changelog entry will look like:")
        lines.append("")
        if change.breaking:
            lines.append(BREAKING_CHANGE_HEADER)
        elif change.change_type is ChangeType.FEATURE:
            lines.append(FEATURE_CHANGE_HEADER)
        else:
            lines.append(BUG_FIX_CHANGE_HEADER)
        lines.append(make_change_entry(change, project))

    return "\n".join(lines)


def apply_preview(body: str | None, text: str) -> str:
    """Return ``body`` with its preview block replaced by, or extended with, ``text``."""
    wrapped = _PREVIEW_HEAD + text + PREVIEW_END
    if body and _PREVIEW_BLOCK_PATTERN.search(body):
        return _PREVIEW_BLOCK_PATTERN.sub(lambda _match: wrapped, body, count=1)
    return (body or "") + "\n\n" + wrapped
