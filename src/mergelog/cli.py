"""Command-line interface for mergelog."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import date
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape

from . import __version__ as package_version
from .changelog import count_summary, merged_changes, render_section, update_changelog
from .changes import Change, ChangeType
from .github import GitHubClient
from .preview import apply_preview, render_preview
from .projects import ChangeCollector, ChangesByProject, Project, ProjectLoader, load_project
from .releases import ReleaseRange, bump_version, resolve_range, suggest_bump
from .utils import (
    abort_on_user_interrupt,
    configure_logging,
    console,
    emit_output,
    format_bold,
    log_debug,
    log_info,
    log_success,
)

VERSION_FLAGS = {"--version", "-V"}

CHANGE_TYPE_NAMES = {
    ChangeType.FEATURE: "Feature",
    ChangeType.BUGFIX: "Bug fix",
    ChangeType.TASK: "Internal change",
}


def _resolve_cli_version() -> str:
    try:
        return metadata_version("mergelog")
    except PackageNotFoundError:
        return package_version


@dataclass
class CLIContext:
    """Shared command context."""

    project_root: Path
    github: GitHubClient = field(default_factory=GitHubClient)
    loader: ProjectLoader = load_project
    _project: Optional[Project] = None

    def ensure_project(self) -> Project:
        if self._project is None:
            try:
                self._project = self.loader(self.project_root, None)
            except (FileNotFoundError, ValueError) as error:
                raise click.ClickException(str(error)) from error
        return self._project


@dataclass(frozen=True)
class CheckSummary:
    """Outcome of ``mergelog check``."""

    release_range: ReleaseRange
    changes: ChangesByProject
    breaking: int
    features: int
    bump: str
    suggested_version: str


def create_cli_context(
    *,
    root: Path | None = None,
    debug: bool = False,
    github: GitHubClient | None = None,
) -> CLIContext:
    """Return a CLIContext using the same resolution logic as the CLI entry point."""

    configure_logging(debug)
    project_root = (root or Path(".")).resolve()
    log_debug(f"resolved project root: {project_root}")
    return CLIContext(project_root=project_root, github=github or GitHubClient())


def collect_changes(
    ctx: CLIContext, version: Optional[str]
) -> tuple[ReleaseRange, ChangesByProject]:
    """Resolve the revision range for ``version`` and collect every change in it."""
    project = ctx.ensure_project()
    log_debug(f"project: {project.name} ({project.owner}/{project.repo})")
    releases = ctx.github.list_releases(project.owner, project.repo)
    release_range = resolve_range(version, releases, project.repository.branch_exists)
    log_info(
        f"comparing {release_range.from_version}...{release_range.to_version} "
        f"({release_range.mode.value} mode)"
    )
    changes: ChangesByProject = {}
    try:
        ChangeCollector(ctx.github, ctx.loader).collect(
            project,
            changes,
            release_range.from_version,
            release_range.to_version,
            release_range.mode,
        )
    except ValueError as error:
        # Raised while loading a subproject checkout or its configuration.
        raise click.ClickException(str(error)) from error
    return release_range, changes


def run_update(ctx: CLIContext, version: str, *, today: Optional[date] = None) -> Path:
    """Write the changelog section for ``version`` and return the changelog path."""
    project = ctx.ensure_project()
    _, changes = collect_changes(ctx, version)
    log_debug(f"updating changelog entry for {version}")
    section = render_section(merged_changes(changes), version, project.identity, today=today)
    path = project.identity.changelog_path
    update_changelog(path, section)
    log_success(f"updated {path.name} for {format_bold(version)}.")
    return path


def _print_change_status(change: Change, project_name: str) -> None:
    change_type = "Internal change"
    if change.change_type is not None:
        change_type = CHANGE_TYPE_NAMES[change.change_type]
    console.print(f"{change_type}: {escape(change.pr.html_url)}")
    notes = "<no notes>" if change.notes is None else change.notes
    console.print(f"\t{escape(notes)}")

    for name, note in change.notes_by_project.items():
        text = escape(f"{name} notes: {note}")
        console.print(f"\t[bold]{text}[/bold]" if name == project_name else f"\t{text}")

    if change.headline:
        console.print(f"\t[bold reverse]HEADLINE: {escape(change.headline)}[/bold reverse]")

    for issue in change.fixes:
        console.print(f"\tFixes {issue.owner}/{issue.repo}#{issue.number}")

    if change.change_type is None:
        console.print("\t[bold red]⚠️  No type label![/bold red]")
    if change.breaking:
        console.print("\t\U0001F4A5  Marked as breaking")


def _print_group(heading: str, changes: list[Change], project_name: str) -> None:
    console.print(heading)
    for change in changes:
        _print_change_status(change, project_name)


def run_check(ctx: CLIContext, version: Optional[str]) -> CheckSummary:
    """Report which changes a release would include, without writing anything."""
    project = ctx.ensure_project()
    release_range, changes = collect_changes(ctx, version)
    home = changes.get(project.name, [])
    others = [(name, items) for name, items in changes.items() if name != project.name]

    _print_group(
        f"Will include from home project ({escape(project.name)}):",
        [change for change in home if change.should_include],
        project.name,
    )
    for name, items in others:
        _print_group(
            f"\nWill include from {escape(name)}:",
            [change for change in items if change.should_include],
            project.name,
        )
    _print_group(
        f"\nWill omit from home project ({escape(project.name)}):",
        [change for change in home if not change.should_include],
        project.name,
    )
    for name, items in others:
        _print_group(
            f"\nWill omit from {escape(name)}:",
            [change for change in items if not change.should_include],
            project.name,
        )

    breaking, features = count_summary(merged_changes(changes))
    bump = suggest_bump(breaking, features)
    suggested = bump_version(release_range.from_version, bump)
    console.print("")
    console.print(f"[bold]{breaking}[/bold] breaking changes and [bold]{features}[/bold] features.")
    console.print(f"According to semver, this would be a [bold]{bump}[/bold] release.")
    console.print(f"Suggested version number: [bold]{suggested}[/bold]")
    return CheckSummary(
        release_range=release_range,
        changes=changes,
        breaking=breaking,
        features=features,
        bump=bump,
        suggested_version=suggested,
    )


def run_preview(ctx: CLIContext, number: int, *, full_body: bool = False) -> str:
    """Return the changelog preview for pull request ``number``."""
    project = ctx.ensure_project()
    pr = ctx.github.get_pull_request(project.owner, project.repo, number)
    text = render_preview(pr, project.identity)
    if full_body:
        return apply_preview(pr.body, text)
    return text


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--root",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    help="Project root containing package.json and CHANGELOG.md.",
)
@click.option(
    "--debug",
    "-d",
    is_flag=True,
    help="Enable debug logging.",
)
@click.version_option(version=_resolve_cli_version())
@click.pass_context
def cli(ctx: click.Context, root: Path | None, debug: bool) -> None:
    """Build changelogs from merged pull requests."""

    if ctx.obj is None:
        ctx.obj = create_cli_context(root=root, debug=debug)
    else:
        configure_logging(debug)


@cli.command("update")
@click.argument("version")
@click.pass_obj
def update_cmd(ctx: CLIContext, version: str) -> None:
    """Write the changelog section for VERSION into CHANGELOG.md."""

    run_update(ctx, version)


@cli.command("check")
@click.argument("version", required=False)
@click.pass_obj
def check_cmd(ctx: CLIContext, version: Optional[str]) -> None:
    """Show which changes VERSION would include without touching the changelog.

    Without VERSION, compares the latest release against develop.
    """

    run_check(ctx, version)


@cli.command("preview")
@click.argument("number", type=int)
@click.option(
    "--full-body",
    is_flag=True,
    help="Print the whole PR description with the preview block applied.",
)
@click.pass_obj
def preview_cmd(ctx: CLIContext, number: int, full_body: bool) -> None:
    """Print the changelog preview for pull request NUMBER."""

    emit_output(run_preview(ctx, number, full_body=full_body))


def main(argv: list[str] | None = None) -> int:
    """Entry point for console_scripts."""
    args = list(argv) if argv is not None else list(sys.argv[1:])

    if any(flag in args for flag in VERSION_FLAGS):
        click.echo(_resolve_cli_version())
        return 0

    try:
        cli.main(args=args, prog_name="mergelog", standalone_mode=False)
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        exit_code = getattr(exc, "exit_code", 1)
        return exit_code if isinstance(exit_code, int) else 1
    except KeyboardInterrupt as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            exit_code = getattr(exit_exc, "exit_code", 130)
            return exit_code if isinstance(exit_code, int) else 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
