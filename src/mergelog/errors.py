"""Error types raised while collecting changes and updating changelogs."""

from __future__ import annotations

from click import ClickException


class MergelogError(ClickException):
    """Base class for failures that abort a mergelog operation."""


class NotFoundError(MergelogError):
    """A requested release (or the release before it) does not exist."""


class InvalidStateError(MergelogError):
    """Repository or changelog content cannot be processed as-is.

    Raised for inexact dependency pins and for changelog sections that cannot
    be placed anywhere in the existing document.
    """


class TransportError(MergelogError):
    """Reaching git or GitHub failed, or did not return everything requested."""
