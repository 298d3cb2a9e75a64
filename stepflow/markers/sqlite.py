"""SQLite implementation of the marker store."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from ..errors import MarkerStoreIOError
from .models import Marker, utcnow
from .store import MarkerStore


class SQLiteMarkerStore(MarkerStore):
    """Persist markers in a single SQLite table keyed by step name."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise MarkerStoreIOError(f"Cannot open marker database {self.db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS markers (
                step_name TEXT PRIMARY KEY,
                completed_at TEXT,
                alternative TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        try:
            self._conn.execute(query, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise MarkerStoreIOError(f"Marker database error: {exc}") from exc

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise MarkerStoreIOError(f"Marker database error: {exc}") from exc

    @staticmethod
    def _to_marker(row: sqlite3.Row) -> Marker:
        return Marker(
            step_name=row["step_name"],
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            alternative=row["alternative"],
        )

    # ------------------------------------------------------------------
    # Store API
    def is_complete(self, step_name: str) -> bool:
        return self.get(step_name) is not None

    def get(self, step_name: str) -> Optional[Marker]:
        rows = self._fetchall(
            "SELECT step_name, completed_at, alternative FROM markers WHERE step_name = ?",
            step_name,
        )
        return self._to_marker(rows[0]) if rows else None

    def mark_complete(self, step_name: str, alternative: Optional[str] = None) -> None:
        self._execute(
            "INSERT OR REPLACE INTO markers (step_name, completed_at, alternative) VALUES (?, ?, ?)",
            step_name,
            utcnow().isoformat(),
            alternative,
        )

    def reset(self, step_names: Optional[Iterable[str]] = None) -> None:
        if step_names is None:
            self._execute("DELETE FROM markers")
            return
        for name in step_names:
            self._execute("DELETE FROM markers WHERE step_name = ?", name)

    def list_markers(self) -> list[Marker]:
        rows = self._fetchall(
            "SELECT step_name, completed_at, alternative FROM markers ORDER BY completed_at, step_name"
        )
        return [self._to_marker(row) for row in rows]

    def close(self) -> None:
        self._conn.close()
