"""File-per-step implementation of the marker store."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from ..errors import MarkerStoreIOError
from .models import Marker
from .store import MarkerStore

_TMP_PREFIX = ".stepflow-tmp-"


class FileMarkerStore(MarkerStore):
    """Persist each marker as ``<directory>/<prefix><step_name>``.

    Marker files hold a small JSON document. Empty files, such as ones created
    with ``touch``, are still treated as completion markers.
    """

    def __init__(self, directory: str | Path = ".", prefix: str = ".setup_completed_"):
        self.directory = Path(directory)
        self.prefix = prefix

    # ------------------------------------------------------------------
    # Helper methods
    def _path(self, step_name: str) -> Path:
        if not step_name or "/" in step_name or "\\" in step_name:
            raise MarkerStoreIOError(f"Step name cannot be used as a marker file: {step_name!r}")
        return self.directory / f"{self.prefix}{step_name}"

    def _read(self, path: Path, step_name: str) -> Marker:
        try:
            raw = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise MarkerStoreIOError(f"Cannot read marker {path}: {exc}") from exc
        if not raw:
            return Marker(step_name=step_name, completed_at=None)
        try:
            data = json.loads(raw)
            completed_at = data.get("completed_at")
            return Marker(
                step_name=step_name,
                completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
                alternative=data.get("alternative"),
            )
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
            # Hand-written or legacy marker content; the file alone marks completion.
            return Marker(step_name=step_name, completed_at=None)

    # ------------------------------------------------------------------
    # Store API
    def is_complete(self, step_name: str) -> bool:
        try:
            return self._path(step_name).is_file()
        except OSError as exc:
            raise MarkerStoreIOError(f"Cannot check marker for {step_name}: {exc}") from exc

    def get(self, step_name: str) -> Optional[Marker]:
        path = self._path(step_name)
        if not self.is_complete(step_name):
            return None
        return self._read(path, step_name)

    def mark_complete(self, step_name: str, alternative: Optional[str] = None) -> None:
        path = self._path(step_name)
        marker = Marker(step_name=step_name, alternative=alternative)
        payload = {
            "completed_at": marker.completed_at.isoformat(),
            "alternative": alternative,
        }
        tmp = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=_TMP_PREFIX)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(payload))
            os.replace(tmp, path)
        except OSError as exc:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)
            raise MarkerStoreIOError(f"Cannot write marker {path}: {exc}") from exc

    def reset(self, step_names: Optional[Iterable[str]] = None) -> None:
        if step_names is None:
            paths = self._marker_paths()
        else:
            paths = [self._path(name) for name in step_names]
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise MarkerStoreIOError(f"Cannot remove marker {path}: {exc}") from exc

    def list_markers(self) -> list[Marker]:
        return [
            self._read(path, path.name[len(self.prefix):])
            for path in self._marker_paths()
        ]

    def _marker_paths(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        try:
            return sorted(
                path
                for path in self.directory.glob(f"{self.prefix}*")
                if path.is_file()
            )
        except OSError as exc:
            raise MarkerStoreIOError(f"Cannot list markers in {self.directory}: {exc}") from exc
