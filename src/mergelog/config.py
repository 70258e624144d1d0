"""Configuration helpers for mergelog projects."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import yaml

from .utils import guess_git_remote, log_debug, parse_github_slug

RELEASE_CONFIG_FILENAME = "release_config.yaml"
PACKAGE_MANIFEST_FILENAME = "package.json"
CHANGELOG_FILENAME = "CHANGELOG.md"


@dataclass
class SubProjectConfig:
    """Inclusion rules for one subproject."""

    # When False, changes are only pulled in if they carry a note addressed
    # to the root project.
    include_by_default: bool = True
    # The subproject's version always equals the parent's, so it is not
    # looked up in the parent's dependencies.
    mirror_version: bool = False
    path: Optional[str] = None  # checkout location, relative to the parent


@dataclass
class ReleaseConfig:
    """Structured representation of ``release_config.yaml``."""

    subprojects: dict[str, SubProjectConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class ProjectIdentity:
    """Where a project lives locally and on GitHub."""

    name: str
    root: Path
    owner: str
    repo: str

    @property
    def changelog_path(self) -> Path:
        return self.root / CHANGELOG_FILENAME


def release_config_path(project_root: Path) -> Path:
    return project_root / RELEASE_CONFIG_FILENAME


def _read_flag(raw: Mapping[str, Any], keys: tuple[str, ...], default: bool, where: str) -> bool:
    for key in keys:
        if key in raw:
            value = raw[key]
            if not isinstance(value, bool):
                raise ValueError(f"Option '{key}' of subproject '{where}' must be a boolean.")
            return value
    return default


def parse_release_config(raw: object) -> ReleaseConfig:
    """Build a ReleaseConfig from the decoded YAML document."""
    if raw is None:
        return ReleaseConfig()
    if not isinstance(raw, MutableMapping):
        raise ValueError("Release config root must be a mapping")

    subprojects_raw = raw.get("subprojects") or {}
    if not isinstance(subprojects_raw, MutableMapping):
        raise ValueError("Release config option 'subprojects' must be a mapping.")

    subprojects: dict[str, SubProjectConfig] = {}
    for name, options in subprojects_raw.items():
        key = str(name).strip()
        options = options or {}
        if not isinstance(options, MutableMapping):
            raise ValueError(f"Subproject '{key}' must be configured with a mapping.")
        path_raw = options.get("path")
        subprojects[key] = SubProjectConfig(
            include_by_default=_read_flag(
                options, ("includeByDefault", "include_by_default"), True, key
            ),
            mirror_version=_read_flag(options, ("mirrorVersion", "mirror_version"), False, key),
            path=str(path_raw).strip() if path_raw else None,
        )
    return ReleaseConfig(subprojects=subprojects)


def load_release_config(project_root: Path) -> ReleaseConfig:
    """Load the subproject configuration, treating a missing file as empty."""
    path = release_config_path(project_root)
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        log_debug(f"no usable release config at {path}: {exc}")
        return ReleaseConfig()
    return parse_release_config(raw)


def load_package_manifest(project_root: Path) -> dict[str, Any]:
    """Load the working-tree package manifest of a project."""
    path = project_root / PACKAGE_MANIFEST_FILENAME
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return raw


def _repository_url(manifest: Mapping[str, Any]) -> Optional[str]:
    repository = manifest.get("repository")
    if isinstance(repository, str):
        return repository
    if isinstance(repository, Mapping):
        if repository.get("type", "git") != "git":
            return None
        url = repository.get("url")
        return str(url) if url else None
    return None


def load_project_identity(project_root: Path, name: Optional[str] = None) -> ProjectIdentity:
    """Resolve a project's name and GitHub repository.

    The package manifest supplies both; the ``origin`` remote is the fallback
    for the repository.
    """
    root = project_root.resolve()
    try:
        manifest = load_package_manifest(root)
    except FileNotFoundError:
        manifest = {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"{root / PACKAGE_MANIFEST_FILENAME} is not valid JSON: {exc}") from exc

    project_name = name or str(manifest.get("name") or "").strip() or root.name

    slug: Optional[tuple[str, str]] = None
    url = _repository_url(manifest)
    if url:
        slug = parse_github_slug(url)
        if slug is None:
            raise ValueError(f"{root}'s repository isn't a GitHub URL: {url}")
    else:
        slug = guess_git_remote(root)
    if slug is None:
        raise ValueError(f"Couldn't determine the GitHub repository for {root}.")

    owner, repo = slug
    return ProjectIdentity(name=project_name, root=root, owner=owner, repo=repo)
