"""Completion marker persistence for stepflow runs."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from .files import FileMarkerStore
from .inmemory import InMemoryMarkerStore
from .models import Marker
from .sqlite import SQLiteMarkerStore
from .store import MarkerStore

_store_instance: MarkerStore | None = None


def get_marker_store(
    marker_url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> MarkerStore:
    """Factory function to obtain a marker store.

    The backend is selected based on ``marker_url`` which can be provided
    explicitly, via environment variable ``STEPFLOW_MARKER_URL``, or from
    loaded configuration. Supported schemes are ``file://<dir>``,
    ``sqlite://<path>`` and ``memory://``. When no URL is configured, markers
    are written as files into the configured marker directory.
    """

    global _store_instance
    if _store_instance is not None and marker_url is None and config is None:
        return _store_instance

    config = config or load_config()
    marker_url = (
        marker_url
        or os.getenv("STEPFLOW_MARKER_URL")
        or getattr(config, "marker_url", None)
    )

    if not marker_url:
        _store_instance = FileMarkerStore(
            config.markers.directory, prefix=config.markers.prefix
        )
        return _store_instance

    if marker_url.startswith("file://"):
        directory = marker_url.replace("file://", "", 1) or "."
        _store_instance = FileMarkerStore(directory, prefix=config.markers.prefix)
    elif marker_url.startswith("sqlite://"):
        path = marker_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteMarkerStore(path)
    elif marker_url.startswith("memory://"):
        _store_instance = InMemoryMarkerStore()
    else:
        raise ValueError(f"Unsupported marker store: {marker_url}")

    return _store_instance


__all__ = [
    "Marker",
    "MarkerStore",
    "FileMarkerStore",
    "SQLiteMarkerStore",
    "InMemoryMarkerStore",
    "get_marker_store",
]
