"""Git access: merged pull requests in a revision range and files at revisions."""

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import InvalidStateError, TransportError
from .utils import log_debug

MANIFEST_FILENAME = "package.json"

_MERGE_COMMIT_PATTERN = re.compile(r"Merge pull request #(\d+) from (.*)")
_SQUASH_NUMBER_PATTERN = re.compile(r"\(#(\d+)\)")

# Branches that are read from the remote so stale local checkouts do not matter.
_REMOTE_BRANCHES = ("develop", "staging")
_REMOTE_BRANCH_PREFIXES = ("release",)
_REMOTE_NAME = "origin"


@dataclass(frozen=True)
class MergeCommit:
    """A commit that introduced a pull request into the history."""

    pr_number: int
    sha: str


def remote_revision(revision: str) -> str:
    """Map well-known branch names onto their remote-tracking ref."""
    if revision in _REMOTE_BRANCHES or revision.startswith(_REMOTE_BRANCH_PREFIXES):
        return f"{_REMOTE_NAME}/{revision}"
    return revision


def parse_merge_commits(lines: Iterable[str]) -> list[MergeCommit]:
    """Extract merged pull requests from ``git rev-list --format=medium`` output.

    Both ``Merge pull request #N`` merge commits and squash-merged commits
    whose message carries ``(#N)`` are recognized.
    """
    merges: list[MergeCommit] = []
    commit: Optional[str] = None
    for line in lines:
        trimmed = line.strip()
        if trimmed.startswith("commit "):
            commit = trimmed.split(" ")[1]
        if commit is None:
            continue
        match = _MERGE_COMMIT_PATTERN.search(trimmed) or _SQUASH_NUMBER_PATTERN.search(trimmed)
        if match:
            merges.append(MergeCommit(pr_number=int(match.group(1)), sha=commit))
    return merges


class GitRepository:
    """A local git checkout of one project."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _git(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self.root),
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise TransportError("git is required but was not found in PATH.") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise TransportError(
                f"git {' '.join(args)} failed in {self.root} (exit status {exc.returncode})"
                + (f": {stderr}" if stderr else ".")
            ) from exc
        return result.stdout

    def merged_pull_requests(self, from_revision: str, to_revision: str) -> list[MergeCommit]:
        """Return the pull requests merged after ``from_revision`` up to ``to_revision``."""
        # No --merges: squash merges have a single parent.
        output = self._git(
            "rev-list",
            "--format=medium",
            f"^{self.resolve_revision(from_revision)}",
            self.resolve_revision(to_revision),
        )
        merges = parse_merge_commits(output.splitlines())
        log_debug(
            f"found merged PRs in {self.root.name}: "
            + (", ".join(str(merge.pr_number) for merge in merges) or "none")
        )
        return merges

    def _ref_exists(self, ref: str) -> bool:
        try:
            subprocess.run(
                ["git", "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                cwd=str(self.root),
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            return False
        return True

    def resolve_revision(self, revision: str) -> str:
        """Return the ref that ``revision`` is read from.

        Shared branches are preferred from ``origin``; a branch that only
        exists on one side is read from there.
        """
        remote = remote_revision(revision)
        for candidate in (remote, revision, f"{_REMOTE_NAME}/{revision}"):
            if self._ref_exists(candidate):
                return candidate
        # Let git report the unknown revision.
        return remote

    def branch_exists(self, branch: str) -> bool:
        return any(self._ref_exists(ref) for ref in (branch, f"{_REMOTE_NAME}/{branch}"))

    def show_file(self, revision: str, path: str) -> str:
        """Return the content of ``path`` as of ``revision``."""
        return self._git("show", f"{self.resolve_revision(revision)}:{path}")

    def manifest_at(self, revision: str) -> dict[str, Any]:
        """Return the parsed package manifest as of ``revision``."""
        text = self.show_file(revision, MANIFEST_FILENAME)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidStateError(
                f"{MANIFEST_FILENAME} at {revision} is not valid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise InvalidStateError(f"{MANIFEST_FILENAME} at {revision} must be a JSON object.")
        return data

    def dependency_version(self, revision: str, dependency: str) -> Optional[str]:
        """Return the version pin of ``dependency`` as of ``revision``, if declared."""
        dependencies = self.manifest_at(revision).get("dependencies") or {}
        value = dependencies.get(dependency)
        return str(value) if value is not None else None
