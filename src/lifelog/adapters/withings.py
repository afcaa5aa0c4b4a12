"""Withings smart-scale adapter.

Input is one measure group from the Withings ``measure?action=getmeas``
response::

    {"grpid": 123, "date": 1761650000, "model": "Body+",
     "measures": [{"type": 1, "value": 81234, "unit": -3}, ...]}

Each measure's real value is ``value * 10 ** unit``.  Masses are converted
from kilograms to pounds.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from src.lifelog.base import IngestAdapter

logger = logging.getLogger("lifelog.adapters.withings")

_LBS_PER_KG = 2.20462

# Withings measure type codes
MEASURE_WEIGHT = 1
MEASURE_FAT_FREE_MASS = 5
MEASURE_FAT_RATIO = 6
MEASURE_FAT_MASS = 8
MEASURE_MUSCLE_MASS = 76
MEASURE_HYDRATION = 77
MEASURE_BONE_MASS = 88


class WithingsAdapter(IngestAdapter):
    """Withings measure groups → body weight database records."""

    SOURCE_ID = "withings"
    DISPLAY_NAME = "Withings Body Weight"

    def unique_id(self, raw: dict, day: date) -> str | None:
        grpid = raw.get("grpid")
        return str(grpid) if grpid is not None else None

    def raw_date(self, raw: dict) -> Any:
        return raw.get("date")

    def display_name(self, raw: dict, day: date) -> str:
        return f"Weight {day.isoformat()}"

    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        measures = self.decode_measures(raw.get("measures") or [])
        weight_kg = measures.get(MEASURE_WEIGHT)
        hydration_kg = measures.get(MEASURE_HYDRATION)

        measured_at = self._normalizer.localize(
            datetime.fromtimestamp(float(raw["date"]), tz=timezone.utc)
        )

        values = self._mapped(raw)
        values.update({
            "name": self.display_name(raw, day),
            "measurement_id": self.unique_id(raw, day),
            "date": day,
            "date_string": day.isoformat(),
            "weight": self._lbs(weight_kg),
            "fat_free_mass": self._lbs(measures.get(MEASURE_FAT_FREE_MASS)),
            "fat_percentage": self._round(measures.get(MEASURE_FAT_RATIO)),
            "fat_mass": self._lbs(measures.get(MEASURE_FAT_MASS)),
            "muscle_mass": self._lbs(measures.get(MEASURE_MUSCLE_MASS)),
            "body_water_percentage": (
                self._round(hydration_kg / weight_kg * 100)
                if hydration_kg is not None and weight_kg
                else None
            ),
            "bone_mass": self._lbs(measures.get(MEASURE_BONE_MASS)),
            "measurement_time": measured_at.strftime("%H:%M"),
            "calendar_created": False,
        })
        return values

    # ------------------------------------------------------------------

    @classmethod
    def decode_measures(cls, measures: list[dict]) -> dict[int, float]:
        """Return measure type → real value, skipping malformed entries."""
        decoded: dict[int, float] = {}
        for m in measures:
            mtype = cls._safe_int(m.get("type"))
            value = cls._safe_float(m.get("value"))
            unit = cls._safe_int(m.get("unit")) or 0
            if mtype is None or value is None:
                continue
            decoded[mtype] = value * (10 ** unit)
        return decoded

    @staticmethod
    def _round(value: float | None) -> float | None:
        return round(value, 1) if value is not None else None

    @staticmethod
    def _lbs(kg: float | None) -> float | None:
        return round(kg * _LBS_PER_KG, 1) if kg is not None else None
