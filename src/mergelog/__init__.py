"""Core package exports for mergelog."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as metadata_version
from typing import TYPE_CHECKING, Any

__all__ = ["__version__", "Mergelog"]

try:
    __version__ = metadata_version("mergelog")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

if TYPE_CHECKING:  # pragma: no cover
    from .api import Mergelog


def __getattr__(name: str) -> Any:  # pragma: no cover - simple delegation
    if name == "Mergelog":
        from .api import Mergelog as _Mergelog

        return _Mergelog
    raise AttributeError(f"module 'mergelog' has no attribute {name!r}")
