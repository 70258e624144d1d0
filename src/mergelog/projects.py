"""Recursive change collection across a project and its subprojects."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .changes import Change, change_from_pull_request, get_change_notes
from .config import (
    ProjectIdentity,
    ReleaseConfig,
    SubProjectConfig,
    load_project_identity,
    load_release_config,
)
from .errors import InvalidStateError
from .github import GitHubClient
from .releases import BranchMode, endpoint_for_mode, exact_tag
from .revisions import GitRepository
from .utils import log_debug

ChangesByProject = dict[str, list[Change]]


@dataclass
class Project:
    """A project checkout together with its subproject configuration."""

    identity: ProjectIdentity
    repository: GitRepository
    config: ReleaseConfig = field(default_factory=ReleaseConfig)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def root(self) -> Path:
        return self.identity.root

    @property
    def owner(self) -> str:
        return self.identity.owner

    @property
    def repo(self) -> str:
        return self.identity.repo

    def subproject_root(self, name: str, config: SubProjectConfig) -> Path:
        # Subprojects are expected to be checked out next to this project
        # unless configured otherwise.
        relative = config.path or os.path.join("..", name)
        return Path(os.path.normpath(self.root / relative))


ProjectLoader = Callable[[Path, Optional[str]], Project]


def load_project(root: Path, name: Optional[str] = None) -> Project:
    """Load a project from its checkout directory."""
    identity = load_project_identity(root, name)
    return Project(
        identity=identity,
        repository=GitRepository(identity.root),
        config=load_release_config(identity.root),
    )


def should_include_change(change: Change, root_project: str, include_by_default: bool) -> bool:
    """Decide whether a change belongs in the root project's changelog."""
    if get_change_notes(change, root_project) is None:
        return False
    if change.notes_by_project.get(root_project):
        return True
    return include_by_default


class ChangeCollector:
    """Walk a project graph depth-first and classify every merged PR."""

    def __init__(self, github: GitHubClient, loader: ProjectLoader = load_project) -> None:
        self.github = github
        self.loader = loader

    def collect(
        self,
        project: Project,
        changes: ChangesByProject,
        from_version: str,
        to_version: str,
        mode: BranchMode,
        root_project: Optional[Project] = None,
        include_by_default: bool = True,
    ) -> ChangesByProject:
        """Add the changes of ``project`` and its subprojects to ``changes``.

        Projects already present in ``changes`` are skipped, so shared
        dependencies are visited once.
        """
        if project.name in changes:
            return changes
        root = root_project or project

        log_debug(f"getting changes in {project.name} from {from_version} to {to_version}")
        merges = project.repository.merged_pull_requests(from_version, to_version)
        log_debug(f"fetching PR metadata from {project.owner}/{project.repo}...")
        pulls = self.github.merged_pull_requests(project.owner, project.repo, merges)

        classified: list[Change] = []
        for pr in pulls:
            change = change_from_pull_request(pr)
            change.should_include = should_include_change(change, root.name, include_by_default)
            classified.append(change)
        changes[project.name] = classified

        for name, sub_config in project.config.subprojects.items():
            subproject = self.loader(project.subproject_root(name, sub_config), name)
            sub_from, sub_to = self._subproject_range(
                project, subproject, sub_config, from_version, to_version, mode
            )
            log_debug(f"getting changes for subproject {name}: {sub_from} - {sub_to}")
            self.collect(
                subproject,
                changes,
                sub_from,
                sub_to,
                mode,
                root_project=root,
                include_by_default=include_by_default and sub_config.include_by_default,
            )
        return changes

    def _subproject_range(
        self,
        project: Project,
        subproject: Project,
        config: SubProjectConfig,
        from_version: str,
        to_version: str,
        mode: BranchMode,
    ) -> tuple[str, str]:
        if config.mirror_version:
            return from_version, to_version

        from_pin = self._dependency_pin(project, from_version, subproject.name)
        to_pin = self._dependency_pin(project, to_version, subproject.name)
        # The parent's "to" may be an unreleased branch, so the subproject
        # follows the same branch mode instead of its literal pin.
        return exact_tag(from_pin), endpoint_for_mode(
            to_pin, mode, subproject.repository.branch_exists
        )

    @staticmethod
    def _dependency_pin(project: Project, revision: str, dependency: str) -> str:
        pin = project.repository.dependency_version(revision, dependency)
        if pin is None:
            raise InvalidStateError(
                f"{project.name} does not depend on {dependency} at {revision}."
            )
        return pin
