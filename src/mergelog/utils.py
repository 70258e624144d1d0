"""Shared utilities for logging, console output, and git remotes."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import NoReturn, Optional, Sequence

import click
from rich.console import Console

CHECKMARK = "\033[92;1m✔\033[0m"
CROSS = "\033[31m✘\033[0m"
INFO = "\033[94;1mi\033[0m"
WARNING = "○"
DEBUG_PREFIX = "\033[95m◆\033[0m"

CHECKMARK_PREFIX = f"{CHECKMARK} "
CROSS_PREFIX = f"{CROSS} "
INFO_PREFIX = f"{INFO} "
WARNING_PREFIX = f"{WARNING} "
DEBUG_PREFIX_WITH_SPACE = f"{DEBUG_PREFIX} "
BOLD = "\033[1m"
RESET = "\033[0m"

GITHUB_URL_PREFIX = "https://github.com/"

_LOGGER_NAME = "mergelog"
_LOGGER = logging.getLogger(_LOGGER_NAME)

console = Console(highlight=False)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Configure the shared logger used across the CLI."""
    level = logging.DEBUG if debug else logging.INFO
    _LOGGER.setLevel(level)
    while _LOGGER.handlers:
        handler = _LOGGER.handlers.pop()
        handler.close()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    _LOGGER.addHandler(handler)
    _LOGGER.propagate = False
    return _LOGGER


def _log(prefix: str, message: str, level: int) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    lines = message.splitlines() or [""]
    for line in lines:
        if line:
            logger.log(level, f"{prefix}{line}")
        else:
            logger.log(level, prefix.rstrip())


def log_info(message: str) -> None:
    """Log an informational message with the standardized prefix."""
    _log(INFO_PREFIX, message, logging.INFO)


def log_success(message: str) -> None:
    """Log a success message with the standardized prefix."""
    _log(CHECKMARK_PREFIX, message, logging.INFO)


def log_error(message: str) -> None:
    """Log an error message with the standardized prefix."""
    _log(CROSS_PREFIX, message, logging.ERROR)


def log_warning(message: str) -> None:
    """Log a warning message with the standardized prefix."""
    _log(WARNING_PREFIX, message, logging.WARNING)


def log_debug(message: str) -> None:
    """Log a debug message with the standardized prefix."""
    _log(DEBUG_PREFIX_WITH_SPACE, message, logging.DEBUG)


def abort_on_user_interrupt(exc: BaseException | None = None) -> NoReturn:
    """Log a standardized cancellation message and exit the command."""

    log_error("operation cancelled by user (Ctrl+C).")
    raise click.exceptions.Exit(130) from exc


def format_bold(text: str) -> str:
    """Return text wrapped in ANSI bold styling."""
    return f"{BOLD}{text}{RESET}"


def emit_output(content: str, *, newline: bool = True) -> None:
    """Emit raw command output to stdout for machine consumption."""
    click.echo(content, nl=newline, err=False)


def join_with_conjunction(items: Sequence[str]) -> str:
    """Join items as natural language: ``a``, ``a and b``, ``a, b and c``."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + f" and {items[-1]}"


def parse_github_slug(url: str) -> Optional[tuple[str, str]]:
    """Return ``(owner, repo)`` for a GitHub https or ssh remote URL."""
    text = url.strip()
    if text.endswith(".git"):
        text = text[: -len(".git")]
    if text.startswith("git@github.com:"):
        remainder = text[len("git@github.com:") :]
    elif text.startswith(GITHUB_URL_PREFIX):
        remainder = text[len(GITHUB_URL_PREFIX) :]
    else:
        return None
    parts = remainder.strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def guess_git_remote(project_root: Path) -> Optional[tuple[str, str]]:
    """Return the GitHub ``(owner, repo)`` of the origin remote if available."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=str(project_root),
            check=True,
            capture_output=True,
            text=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    url = result.stdout.strip()
    if not url:
        return None
    return parse_github_slug(url)
