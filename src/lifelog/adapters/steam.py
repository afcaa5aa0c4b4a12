"""Steam play-session adapter.

Input is one per-game, per-day item produced by the playtime tracker::

    {"app_id": 570, "game_name": "Dota 2",
     "start_time": "2025-10-28T23:10:00Z", "end_time": "2025-10-29T01:40:00Z",
     "minutes_played": 150, "session_count": 2,
     "session_details": "7:10 PM-8:00 PM, 8:20 PM-9:40 PM"}

Times are UTC instants; the stored date and display times are local.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from src.lifelog.base import IngestAdapter
from src.lifelog.errors import DataError

logger = logging.getLogger("lifelog.adapters.steam")


class SteamAdapter(IngestAdapter):
    """Steam play sessions → video game database records."""

    SOURCE_ID = "steam"
    DISPLAY_NAME = "Steam Games"

    def unique_id(self, raw: dict, day: date) -> str | None:
        if raw.get("activity_id"):
            return str(raw["activity_id"])
        app_id = raw.get("app_id")
        if app_id is None:
            return None
        return f"{app_id}-{day.isoformat()}"

    def raw_date(self, raw: dict) -> Any:
        return raw.get("start_time")

    def display_name(self, raw: dict, day: date) -> str:
        return raw.get("game_name") or f"Gaming Session {day.isoformat()}"

    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        minutes = self._safe_int(raw.get("minutes_played"))

        values = self._mapped(raw)
        values.update({
            "activity_id": self.unique_id(raw, day),
            "date": day,
            "start_time": self._local_time(raw.get("start_time")),
            "end_time": self._local_time(raw.get("end_time")),
            "start_time_utc": raw.get("start_time"),
            "end_time_utc": raw.get("end_time"),
            "minutes_played": minutes,
            "hours_played": round(minutes / 60, 2) if minutes is not None else None,
            "session_count": self._safe_int(raw.get("session_count")),
            "calendar_created": False,
        })
        return values

    def _local_time(self, value: str | None) -> str | None:
        """UTC ISO instant → local ``HH:MM``."""
        if not value:
            return None
        try:
            instant = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise DataError(f"Invalid Steam session time: {value!r}") from None
        return self._normalizer.localize(instant).strftime("%H:%M")
