"""Config-driven date normalization.

Each source encodes its event date differently.  A ``DateHandling`` descriptor
per source tells the normalizer how to get from the raw value to one canonical
calendar date in the destination timezone:

    1. parse           — according to ``source_format``
    2. extract         — according to ``extraction_method``
    3. offset          — add ``date_offset`` whole days

Source formats:
    date_string   — ``YYYY-MM-DD`` (Oura wake-up day)
    iso_local     — ISO datetime carrying local wall-clock time (Strava)
    iso_utc       — ISO instant, naive values treated as UTC (GitHub, Steam)
    unix_seconds  — seconds since the epoch (Withings)

Extraction methods:
    night_of            — subtract one day (wake-up morning → night sleep began)
    to_target_timezone  — convert the instant to the configured timezone
    strip_time          — keep the wall-clock date as written
    identity            — take the date as parsed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.lifelog.errors import ConfigurationError, DataError

logger = logging.getLogger("lifelog.date_normalizer")


class SourceFormat(str, Enum):
    DATE_STRING = "date_string"
    ISO_LOCAL = "iso_local"
    ISO_UTC = "iso_utc"
    UNIX_SECONDS = "unix_seconds"


class ExtractionMethod(str, Enum):
    NIGHT_OF = "night_of"
    TO_TARGET_TIMEZONE = "to_target_timezone"
    STRIP_TIME = "strip_time"
    IDENTITY = "identity"

    @property
    def shifts_day(self) -> bool:
        """True when the method itself moves the date by whole days."""
        return self is ExtractionMethod.NIGHT_OF


@dataclass(frozen=True)
class DateHandling:
    """Date pipeline descriptor for one source.

    A day-shifting extraction method already encodes its offset, so pairing it
    with a nonzero ``date_offset`` would apply the shift twice.  That
    combination is rejected here rather than tolerated.

    Raises:
        ConfigurationError: On an invalid combination of fields.
    """

    source_format: SourceFormat
    extraction_method: ExtractionMethod
    date_offset: int = 0

    def __post_init__(self) -> None:
        if self.extraction_method.shifts_day and self.date_offset != 0:
            raise ConfigurationError(
                f"extraction_method '{self.extraction_method.value}' already shifts "
                f"the date; date_offset must be 0, got {self.date_offset}"
            )
        if (
            self.extraction_method is ExtractionMethod.TO_TARGET_TIMEZONE
            and self.source_format is SourceFormat.DATE_STRING
        ):
            raise ConfigurationError(
                "extraction_method 'to_target_timezone' needs an instant; "
                "source_format 'date_string' has no time component"
            )


def _parse_iso(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        raise DataError(f"Expected an ISO datetime string, got {value!r}")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise DataError(f"Invalid ISO datetime: {value!r}") from None


def _parse_date_string(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise DataError(f"Expected a YYYY-MM-DD string, got {value!r}")
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        # full timestamps keep their wall-clock date
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise DataError(f"Invalid date string: {value!r}") from None


def _parse_unix(value: Any) -> datetime:
    if isinstance(value, bool):
        raise DataError(f"Expected a Unix timestamp, got {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise DataError(f"Invalid Unix timestamp: {value!r}") from None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise DataError(f"Unix timestamp out of range: {value!r}") from None


class DateNormalizer:
    """Map raw source date values onto canonical calendar dates.

    Usage::

        normalizer = DateNormalizer(config.date_handling, config.timezone)
        normalizer.normalize("oura", "2025-10-28")   # date(2025, 10, 27)
    """

    def __init__(self, handlers: dict[str, DateHandling], target_timezone: str) -> None:
        try:
            self._tz = ZoneInfo(target_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone: {target_timezone!r}") from None
        self._handlers = dict(handlers)
        self.timezone_name = target_timezone

    def handling_for(self, source_key: str) -> DateHandling:
        """Return the descriptor for a source.

        Raises:
            ConfigurationError: If the source has no date handling configured.
        """
        try:
            return self._handlers[source_key]
        except KeyError:
            raise ConfigurationError(
                f"No date handling config for source: {source_key}"
            ) from None

    def normalize(self, source_key: str, raw_value: Any) -> date:
        """Run ``raw_value`` through the source's pipeline.

        Args:
            source_key: Configured source key (e.g. 'oura', 'github').
            raw_value:  Date value exactly as the source delivered it.

        Returns:
            The canonical calendar date.

        Raises:
            ConfigurationError: Unknown source key.
            DataError:          Unparseable raw value.
        """
        handling = self.handling_for(source_key)
        parsed = self._parse(handling.source_format, raw_value)
        extracted = self._extract(handling.extraction_method, parsed)
        if handling.date_offset:
            extracted += timedelta(days=handling.date_offset)
        return extracted

    def format_date(self, source_key: str, raw_value: Any) -> str:
        """Normalize and return the date as ``YYYY-MM-DD`` for storage."""
        return self.normalize(source_key, raw_value).isoformat()

    def localize(self, value: datetime) -> datetime:
        """Convert an instant to the target timezone (naive = UTC)."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self._tz)

    # ------------------------------------------------------------------

    def _parse(self, fmt: SourceFormat, raw: Any) -> date | datetime:
        if raw is None or raw == "":
            raise DataError("Missing date value")
        if fmt is SourceFormat.DATE_STRING:
            return _parse_date_string(raw)
        if fmt is SourceFormat.UNIX_SECONDS:
            return _parse_unix(raw)
        if fmt is SourceFormat.ISO_UTC:
            parsed = _parse_iso(raw)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        parsed = _parse_iso(raw)
        if parsed.tzinfo is None:
            # iso_local without an offset is wall-clock time in the target zone
            parsed = parsed.replace(tzinfo=self._tz)
        return parsed

    def _extract(self, method: ExtractionMethod, value: date | datetime) -> date:
        if method is ExtractionMethod.TO_TARGET_TIMEZONE:
            if not isinstance(value, datetime):
                raise DataError("Timezone conversion needs a datetime value")
            return self.localize(value).date()

        day = value.date() if isinstance(value, datetime) else value
        if method is ExtractionMethod.NIGHT_OF:
            return day - timedelta(days=1)
        # strip_time and identity both keep the wall-clock date
        return day
