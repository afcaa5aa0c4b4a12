"""Strava activity adapter.

Input is one summary activity from ``GET /athlete/activities``.  Strava's
``start_date_local`` carries the athlete's wall clock (with a misleading
``Z`` suffix), so the date is taken as written.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from src.lifelog.base import IngestAdapter

logger = logging.getLogger("lifelog.adapters.strava")

_METERS_PER_MILE = 1609.344


class StravaAdapter(IngestAdapter):
    """Strava activities → workout database records."""

    SOURCE_ID = "strava"
    DISPLAY_NAME = "Strava Workouts"

    def unique_id(self, raw: dict, day: date) -> int | None:
        return self._safe_int(raw.get("id"))

    def raw_date(self, raw: dict) -> Any:
        return raw.get("start_date_local")

    def display_name(self, raw: dict, day: date) -> str:
        return raw.get("name") or f"Workout {day.isoformat()}"

    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        values = self._mapped(raw)

        moving = self._safe_int(raw.get("moving_time") or raw.get("elapsed_time"))
        meters = self._safe_float(raw.get("distance"))
        local_start = raw.get("start_date_local") or ""

        values.update({
            "activity_id": self.unique_id(raw, day),
            "date": day,
            "type": raw.get("sport_type") or raw.get("type"),
            # "2025-10-28T06:30:00Z" → "06:30"
            "start_time": local_start[11:16] or None,
            "duration": round(moving / 60) if moving is not None else None,
            "distance": round(meters / _METERS_PER_MILE, 2) if meters is not None else None,
            "calendar_created": False,
        })
        return values
