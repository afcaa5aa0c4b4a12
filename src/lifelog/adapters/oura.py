"""Oura Ring sleep session adapter.

Input is one item from the Oura API v2 ``/v2/usercollection/sleep`` endpoint.
Oura's ``day`` is the morning the user woke up; the date pipeline maps it back
to the night the sleep began.

Durations arrive in seconds.  Total sleep is stored in hours, stages in
minutes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from src.lifelog.base import IngestAdapter

logger = logging.getLogger("lifelog.adapters.oura")

# Waking before this hour (local wall clock) counts as a normal wake-up
WAKE_TIME_THRESHOLD_HOUR = 7
NORMAL_WAKE_UP = "Normal Wake Up"
SLEEP_IN = "Sleep In"


class OuraAdapter(IngestAdapter):
    """Oura sleep sessions → sleep database records."""

    SOURCE_ID = "oura"
    DISPLAY_NAME = "Oura Sleep"

    def unique_id(self, raw: dict, day: date) -> str | None:
        return raw.get("id")

    def raw_date(self, raw: dict) -> Any:
        return raw.get("day")

    def display_name(self, raw: dict, day: date) -> str:
        return f"Night of {day:%A, %B} {day.day}, {day.year}"

    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        values = self._mapped(raw)

        total_secs = self._safe_int(raw.get("total_sleep_duration"))
        values.update({
            "title": self.display_name(raw, day),
            "night_of_date": day,
            "oura_date": raw.get("day"),
            "bedtime": raw.get("bedtime_start"),
            "wake_time": raw.get("bedtime_end"),
            "sleep_duration": round(total_secs / 3600, 1) if total_secs is not None else None,
            "deep_sleep": self._minutes(raw.get("deep_sleep_duration")),
            "light_sleep": self._minutes(raw.get("light_sleep_duration")),
            "rem_sleep": self._minutes(raw.get("rem_sleep_duration")),
            "awake_time": self._minutes(raw.get("awake_time")),
            "google_calendar": self.wake_category(raw.get("bedtime_end")),
            "calendar_created": False,
        })
        return values

    # ------------------------------------------------------------------

    def _minutes(self, seconds: object) -> int | None:
        secs = self._safe_int(seconds)
        return round(secs / 60) if secs is not None else None

    @staticmethod
    def wake_category(wake_time: str | None) -> str | None:
        """Classify the wake-up by its local wall-clock hour.

        Returns None when the wake time is missing or unparseable.
        """
        if not wake_time:
            return None
        try:
            woke = datetime.fromisoformat(wake_time.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable Oura wake time %r", wake_time)
            return None
        return NORMAL_WAKE_UP if woke.hour < WAKE_TIME_THRESHOLD_HOUR else SLEEP_IN
