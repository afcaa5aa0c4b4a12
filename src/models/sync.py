"""Pydantic models for the sync endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import Field, model_validator

from src.models.base import LifelogBase


# ---------- Requests ----------

class RecordSyncRequest(LifelogBase):
    """Pre-fetched raw items from one source."""

    items: list[dict[str, Any]] = Field(default_factory=list, max_length=1000)


class CalendarSyncRequest(LifelogBase):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_range(self) -> "CalendarSyncRequest":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


# ---------- Results ----------

class SyncItemRead(LifelogBase):
    item_id: str
    display_name: str = ""
    page_id: str | None = None
    calendar_id: str | None = None
    event_id: str | None = None
    summary: str | None = None
    reason: str | None = None
    updated: bool = False


class SyncErrorRead(LifelogBase):
    item_id: str
    error: str
    index: int


class SyncResultRead(LifelogBase):
    source: str
    total: int
    created: list[SyncItemRead] = Field(default_factory=list)
    skipped: list[SyncItemRead] = Field(default_factory=list)
    errors: list[SyncErrorRead] = Field(default_factory=list)


# ---------- Sources ----------

class SourceRead(LifelogBase):
    key: str
    display_name: str
    configured: bool
    status_pattern: str
    calendar_mapping: str | None = None
    calendars_configured: bool = False
