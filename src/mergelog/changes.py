"""Pull request metadata and its classification into changelog changes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional


class ChangeType(Enum):
    """Kind of change a pull request makes, as declared by its type label."""

    FEATURE = "feature"
    BUGFIX = "bugfix"
    TASK = "task"


LABEL_TO_CHANGE_TYPE: dict[str, ChangeType] = {
    "T-Enhancement": ChangeType.FEATURE,
    "T-Defect": ChangeType.BUGFIX,
    "T-Task": ChangeType.TASK,
}

BREAKING_CHANGE_LABEL = "X-Breaking-Change"

MEMBER_ASSOCIATIONS = ("MEMBER", "OWNER")

_CLOSING_VERB = r"(?:close[sd]?|fix|fixe[sd]|resolve[sd]?):?"


@dataclass(frozen=True)
class IssueRef:
    """An issue in any GitHub repository."""

    owner: str
    repo: str
    number: int


@dataclass(frozen=True)
class PullRequest:
    """The subset of a GitHub pull request that classification needs."""

    number: int
    title: str
    body: Optional[str]
    html_url: str
    base_owner: str
    base_repo: str
    labels: tuple[str, ...] = ()
    author_login: str = ""
    author_url: str = ""
    author_association: str = "NONE"
    merge_commit_sha: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "PullRequest":
        """Build a pull request from a GitHub REST API ``pulls`` payload."""
        user = payload.get("user") or {}
        base_repo = (payload.get("base") or {}).get("repo") or {}
        base_owner = base_repo.get("owner") or {}
        labels = tuple(
            str(label["name"]) if isinstance(label, Mapping) else str(label)
            for label in payload.get("labels") or ()
        )
        return cls(
            number=int(payload["number"]),
            title=str(payload.get("title") or ""),
            body=payload.get("body"),
            html_url=str(payload.get("html_url") or ""),
            base_owner=str(base_owner.get("login") or base_owner.get("name") or ""),
            base_repo=str(base_repo.get("name") or ""),
            labels=labels,
            author_login=str(user.get("login") or ""),
            author_url=str(user.get("html_url") or ""),
            author_association=str(payload.get("author_association") or "NONE"),
            merge_commit_sha=payload.get("merge_commit_sha"),
        )

    @property
    def is_member(self) -> bool:
        # A crude approximation of GitHub's permission model.
        return self.author_association in MEMBER_ASSOCIATIONS


@dataclass
class Change:
    """A classified pull request.

    ``notes`` of ``None`` means the change deliberately has no changelog
    entry. ``change_type`` of ``None`` means no type label was present.
    """

    pr: PullRequest
    notes: Optional[str]
    notes_by_project: dict[str, Optional[str]] = field(default_factory=dict)
    headline: Optional[str] = None
    change_type: Optional[ChangeType] = None
    fixes: list[IssueRef] = field(default_factory=list)
    breaking: bool = False
    security: bool = False
    should_include: bool = False


def change_type_labels() -> list[str]:
    """Return the labels that declare a change type."""
    return list(LABEL_TO_CHANGE_TYPE)


def has_change_type_label(pr: PullRequest) -> bool:
    return any(label in LABEL_TO_CHANGE_TYPE for label in pr.labels)


def get_change_notes(change: Change, project_name: str) -> Optional[str]:
    """Return the note a change carries for ``project_name``.

    A project-specific note wins over the default note, including an explicit
    ``none`` addressed to that project.
    """
    if project_name in change.notes_by_project:
        return change.notes_by_project[project_name]
    return change.notes


def _none_to_null(text: str) -> Optional[str]:
    value = text.strip()
    if value.lower() == "none":
        return None
    return value


def _set_notes(change: Change, match: re.Match[str]) -> None:
    change.notes = _none_to_null(match.group(1))


def _set_headline(change: Change, match: re.Match[str]) -> None:
    change.headline = match.group(1).strip()


def _set_project_notes(change: Change, match: re.Match[str]) -> None:
    change.notes_by_project[match.group(1)] = _none_to_null(match.group(2))


def _add_local_issue(change: Change, match: re.Match[str]) -> None:
    # GitHub's API does not expose the issues a PR closes, so only
    # references in the PR body are found.
    change.fixes.append(
        IssueRef(owner=change.pr.base_owner, repo=change.pr.base_repo, number=int(match.group(1)))
    )


def _add_remote_issue(change: Change, match: re.Match[str]) -> None:
    change.fixes.append(
        IssueRef(owner=match.group(1), repo=match.group(2), number=int(match.group(3)))
    )


# Tried in order against each trimmed body line; the first match wins.
_LINE_MATCHERS: tuple[tuple[re.Pattern[str], Callable[[Change, re.Match[str]], None]], ...] = (
    (re.compile(r"^notes: (.*)$", re.IGNORECASE), _set_notes),
    (re.compile(r"^headlines: (.*)$", re.IGNORECASE), _set_headline),
    (re.compile(r"^([\w-]+) notes: (.*)$", re.IGNORECASE), _set_project_notes),
    (re.compile(_CLOSING_VERB + r" #(\d+)", re.IGNORECASE), _add_local_issue),
    (re.compile(_CLOSING_VERB + r" ([\w.-]+)/([\w.-]+)#(\d+)", re.IGNORECASE), _add_remote_issue),
    (
        re.compile(
            _CLOSING_VERB + r" https?://github\.com/([\w.-]+)/([\w.-]+)/issues/(\d+)",
            re.IGNORECASE,
        ),
        _add_remote_issue,
    ),
)


def change_from_pull_request(pr: PullRequest) -> Change:
    """Classify a pull request from its labels and description markers."""
    change = Change(pr=pr, notes=pr.title)

    for label in pr.labels:
        if label in LABEL_TO_CHANGE_TYPE:
            change.change_type = LABEL_TO_CHANGE_TYPE[label]
        elif label == BREAKING_CHANGE_LABEL:
            change.breaking = True

    # Security fixes land through private advisory forks and never have a
    # pull request object, so ``security`` stays False here.

    if not pr.body:
        return change

    for line in pr.body.splitlines():
        trimmed = line.strip()
        for pattern, apply in _LINE_MATCHERS:
            match = pattern.search(trimmed)
            if match:
                apply(change, match)
                break

    return change
