"""Shared fakes for git and GitHub collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import pytest

from mergelog.changes import PullRequest
from mergelog.config import ProjectIdentity, ReleaseConfig, SubProjectConfig
from mergelog.errors import TransportError
from mergelog.github import Release
from mergelog.projects import Project
from mergelog.revisions import MergeCommit

PullRequestFactory = Callable[..., PullRequest]


def _make_pr(
    number: int = 1,
    *,
    title: str = "",
    body: Optional[str] = "",
    labels: Iterable[str] = (),
    owner: str = "thingtransformer",
    repo: str = "bert",
    association: str = "MEMBER",
    sha: Optional[str] = None,
) -> PullRequest:
    return PullRequest(
        number=number,
        title=title,
        body=body,
        html_url=f"https://github.com/{owner}/{repo}/pull/{number}",
        base_owner=owner,
        base_repo=repo,
        labels=tuple(labels),
        author_login="octocat",
        author_url="https://github.com/octocat",
        author_association=association,
        merge_commit_sha=sha if sha is not None else f"sha{number}",
    )


@pytest.fixture
def make_pr() -> PullRequestFactory:
    return _make_pr


class FakeRepository:
    """Stands in for GitRepository with canned revision data."""

    def __init__(
        self,
        merges: Optional[dict[tuple[str, str], list[MergeCommit]]] = None,
        manifests: Optional[dict[str, dict[str, str]]] = None,
        branches: Iterable[str] = (),
    ) -> None:
        self.merges = merges or {}
        self.manifests = manifests or {}
        self.branches = set(branches)
        self.walked: list[tuple[str, str]] = []

    def merged_pull_requests(self, from_revision: str, to_revision: str) -> list[MergeCommit]:
        self.walked.append((from_revision, to_revision))
        return list(self.merges.get((from_revision, to_revision), []))

    def branch_exists(self, branch: str) -> bool:
        return branch in self.branches

    def dependency_version(self, revision: str, dependency: str) -> Optional[str]:
        return self.manifests.get(revision, {}).get(dependency)


class FakeGitHub:
    """Stands in for GitHubClient, serving PRs and releases from memory."""

    def __init__(self) -> None:
        self.releases: dict[tuple[str, str], list[Release]] = {}
        self.pulls: dict[tuple[str, str], dict[int, PullRequest]] = {}
        self.fail = False

    def add_pulls(self, owner: str, repo: str, *pulls: PullRequest) -> None:
        store = self.pulls.setdefault((owner, repo), {})
        for pr in pulls:
            store[pr.number] = pr

    def list_releases(self, owner: str, repo: str) -> list[Release]:
        if self.fail:
            raise TransportError("GitHub is unreachable.")
        return list(self.releases.get((owner, repo), []))

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        if self.fail:
            raise TransportError("GitHub is unreachable.")
        return self.pulls[(owner, repo)][number]

    def merged_pull_requests(
        self, owner: str, repo: str, merges: Iterable[MergeCommit]
    ) -> list[PullRequest]:
        if self.fail:
            raise TransportError("GitHub is unreachable.")
        store = self.pulls.get((owner, repo), {})
        return [
            store[merge.pr_number]
            for merge in merges
            if store[merge.pr_number].merge_commit_sha == merge.sha
        ]


def make_project(
    root: Path,
    name: str,
    repository: Any,
    subprojects: Optional[dict[str, SubProjectConfig]] = None,
    owner: str = "vector-im",
) -> Project:
    return Project(
        identity=ProjectIdentity(name=name, root=root / name, owner=owner, repo=name),
        repository=repository,
        config=ReleaseConfig(subprojects=subprojects or {}),
    )


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
