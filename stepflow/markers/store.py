"""Marker store abstraction for step completion state."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from .models import Marker


class MarkerStore(Protocol):
    """Protocol for completion marker backends.

    Implementations raise ``MarkerStoreIOError`` when the backing storage
    cannot be read or written. A store is used by one run at a time.
    """

    def is_complete(self, step_name: str) -> bool:
        """Return ``True`` if a marker exists for ``step_name``."""

    def get(self, step_name: str) -> Optional[Marker]:
        """Return the marker for ``step_name`` if present."""

    def mark_complete(self, step_name: str, alternative: Optional[str] = None) -> None:
        """Record completion of ``step_name``. Safe to call repeatedly."""

    def reset(self, step_names: Optional[Iterable[str]] = None) -> None:
        """Remove markers for ``step_names``, or every marker when ``None``."""

    def list_markers(self) -> list[Marker]:
        """Return all stored markers."""
