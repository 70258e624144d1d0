"""Python-friendly facade for invoking mergelog functionality."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

from .cli import (
    CheckSummary,
    CLIContext,
    collect_changes,
    create_cli_context,
    run_check,
    run_preview,
    run_update,
)
from .github import GitHubClient
from .projects import ChangesByProject
from .releases import ReleaseRange


class Mergelog:
    """High-level helper that mirrors the CLI commands for Python callers."""

    def __init__(
        self,
        *,
        root: Path | str | None = None,
        debug: bool = False,
        github: GitHubClient | None = None,
    ) -> None:
        resolved_root = Path(root) if root is not None else None
        self._ctx = create_cli_context(root=resolved_root, debug=debug, github=github)

    @property
    def context(self) -> CLIContext:
        """Expose the underlying CLIContext for advanced scenarios."""

        return self._ctx

    def collect(self, version: Optional[str] = None) -> tuple[ReleaseRange, ChangesByProject]:
        """Return the resolved range and the classified changes for ``version``."""

        return collect_changes(self._ctx, version)

    def update(self, version: str, *, today: Optional[date] = None) -> Path:
        """Write the section for ``version`` into the changelog and return its path."""

        return run_update(self._ctx, version, today=today)

    def check(self, version: Optional[str] = None) -> CheckSummary:
        return run_check(self._ctx, version)

    def preview(self, number: int, *, full_body: bool = False) -> str:
        return run_preview(self._ctx, number, full_body=full_body)
