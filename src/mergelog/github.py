"""GitHub access through the authenticated ``gh`` CLI."""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from .changes import PullRequest
from .errors import TransportError
from .revisions import MergeCommit
from .utils import log_debug, log_warning

PER_PAGE = 100


@dataclass(frozen=True)
class Release:
    """A published GitHub release."""

    name: str
    prerelease: bool = False

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Release":
        name = payload.get("name") or payload.get("tag_name") or ""
        return cls(name=str(name), prerelease=bool(payload.get("prerelease")))


class GitHubClient:
    """Minimal REST client that delegates HTTP and auth to ``gh api``."""

    def __init__(self, gh_path: Optional[str] = None) -> None:
        self._gh_path = gh_path

    def _resolve_gh(self) -> str:
        if self._gh_path is None:
            self._gh_path = shutil.which("gh")
        if self._gh_path is None:
            raise TransportError("The 'gh' CLI is required but was not found in PATH.")
        return self._gh_path

    def request(self, endpoint: str) -> Any:
        """GET ``endpoint`` and return the decoded JSON payload."""
        command = [self._resolve_gh(), "api", endpoint]
        try:
            result = subprocess.run(command, check=True, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise TransportError("The 'gh' CLI is required but was not found in PATH.") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise TransportError(
                f"GitHub request for {endpoint} failed (exit status {exc.returncode})"
                + (f": {stderr}" if stderr else ".")
            ) from exc
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise TransportError(f"GitHub returned invalid JSON for {endpoint}.") from exc

    def list_releases(self, owner: str, repo: str) -> list[Release]:
        """Return the most recent releases, newest first.

        Only the first page is fetched, so releases more than ``PER_PAGE``
        releases back are not visible.
        """
        payload = self.request(f"repos/{owner}/{repo}/releases?per_page={PER_PAGE}")
        return [Release.from_api(item) for item in payload]

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        return PullRequest.from_api(self.request(f"repos/{owner}/{repo}/pulls/{number}"))

    def list_closed_pull_requests(self, owner: str, repo: str, page: int) -> list[PullRequest]:
        """Return one page of closed pull requests, most recently updated first."""
        payload = self.request(
            f"repos/{owner}/{repo}/pulls?state=closed&sort=updated&direction=desc"
            f"&per_page={PER_PAGE}&page={page}"
        )
        return [PullRequest.from_api(item) for item in payload]

    def merged_pull_requests(
        self, owner: str, repo: str, merges: Iterable[MergeCommit]
    ) -> list[PullRequest]:
        """Fetch the pull requests behind ``merges``.

        Pull requests whose recorded merge commit differs from the one seen in
        git are dropped, since rewritten history can reuse a PR number.
        """
        wanted: dict[int, str] = {merge.pr_number: merge.sha for merge in merges}
        found: list[PullRequest] = []

        def _check_and_add(pr: PullRequest) -> None:
            expected_sha = wanted.pop(pr.number)
            if pr.merge_commit_sha == expected_sha:
                found.append(pr)
            else:
                log_warning(
                    f"ignoring PR {pr.number} because merge commit ({pr.merge_commit_sha}) "
                    f"doesn't match git ({expected_sha})"
                )

        # There is no batch lookup, but the PRs we want are usually the most
        # recently updated ones, so listing is far cheaper than one request each.
        page = 1
        while wanted:
            if len(wanted) == 1:
                number = next(iter(wanted))
                log_debug(f"fetching remaining PR {number} individually...")
                _check_and_add(self.get_pull_request(owner, repo, number))
                break

            log_debug(f"{len(wanted)} PRs left to find, getting page {page}")
            listed = self.list_closed_pull_requests(owner, repo, page)
            if not listed:
                break
            for pr in listed:
                if pr.number in wanted:
                    _check_and_add(pr)
            page += 1

        if wanted:
            log_debug("found info on PRs: " + ", ".join(str(pr.number) for pr in found))
            log_debug("couldn't find: " + ", ".join(str(number) for number in wanted))
            raise TransportError(f"Couldn't find all PRs in {owner}/{repo}.")
        return found
