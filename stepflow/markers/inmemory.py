"""In-memory implementation of the marker store."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from .models import Marker
from .store import MarkerStore


class InMemoryMarkerStore(MarkerStore):
    """Store markers in local memory.

    Useful for tests. Markers are not persisted across process restarts.
    """

    def __init__(self) -> None:
        self._markers: Dict[str, Marker] = {}

    def is_complete(self, step_name: str) -> bool:
        return step_name in self._markers

    def get(self, step_name: str) -> Optional[Marker]:
        return self._markers.get(step_name)

    def mark_complete(self, step_name: str, alternative: Optional[str] = None) -> None:
        self._markers[step_name] = Marker(step_name=step_name, alternative=alternative)

    def reset(self, step_names: Optional[Iterable[str]] = None) -> None:
        if step_names is None:
            self._markers.clear()
            return
        for name in step_names:
            self._markers.pop(name, None)

    def list_markers(self) -> list[Marker]:
        return list(self._markers.values())
