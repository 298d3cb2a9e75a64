"""Data models for persisted step completion markers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Marker(BaseModel):
    """Record that step ``step_name`` completed successfully."""

    step_name: str
    completed_at: Optional[datetime] = Field(default_factory=utcnow)
    alternative: Optional[str] = None
