"""Declarative record → calendar event transformation.

A ``TransformerConfig`` describes one event family: which calendar mapping to
route through, whether events are all-day or timed, where the start and end
come from, and how the summary/description are rendered.  The builder turns
that description into a transformer callable, so no event family needs its
own hand-written transformation function.

Usage::

    builder = EventTransformerBuilder(resolver, "America/New_York")
    transform = builder.build(SLEEP_EVENTS)
    event = transform(page, store)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Callable, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.lifelog.base import CalendarEvent, EventTime, EventType
from src.lifelog.calendar_resolver import CalendarIdResolver
from src.lifelog.errors import ConfigurationError, DataError

if TYPE_CHECKING:
    from src.lifelog.record_store import RecordStore

logger = logging.getLogger("lifelog.event_builder")

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


@dataclass(frozen=True)
class DateTimeRef:
    """A timed value split across a date property and a time property."""

    date: str
    time: str


Template = Union[str, Callable[[dict], str]]
PropertyRef = Union[str, DateTimeRef]
Transformer = Callable[[dict, "RecordStore"], CalendarEvent]


@dataclass(frozen=True)
class TransformerConfig:
    """Declarative description of one event family.

    Attributes:
        calendar_key:      Key into the calendar mapping table.
        summary:           ``{{field}}`` template or callable of extracted values.
        event_type:        All-day or timed.
        start_prop:        Property key (or DateTimeRef) holding the start.
        end_prop:          Property key (or DateTimeRef) holding the end.
        end_from_duration: Property key holding a duration in minutes.
        description:       Template or callable, like ``summary``.
        properties:        Template field → property key to extract.
        fallback_summary:  Used when the rendered summary is blank.
    """

    calendar_key: str
    summary: Template
    event_type: EventType
    start_prop: PropertyRef
    end_prop: PropertyRef | None = None
    end_from_duration: str | None = None
    description: Template = ""
    properties: dict[str, str] = field(default_factory=dict)
    fallback_summary: str = "Event"

    def __post_init__(self) -> None:
        if self.event_type is EventType.ALL_DAY:
            if isinstance(self.start_prop, DateTimeRef) or isinstance(self.end_prop, DateTimeRef):
                raise ConfigurationError(
                    f"{self.calendar_key}: all-day events take plain date properties"
                )
        elif self.end_prop is None and self.end_from_duration is None:
            raise ConfigurationError(
                f"{self.calendar_key}: timed events need end_prop or end_from_duration"
            )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(v) for v in value)
    return str(value)


def interpolate_template(template: str, values: dict[str, Any]) -> str:
    """Replace each ``{{field}}`` with its value; missing fields become ''."""
    return _PLACEHOLDER.sub(lambda m: _stringify(values.get(m.group(1))), template)


def render(template: Template, values: dict[str, Any]) -> str:
    if callable(template):
        return _stringify(template(values))
    return interpolate_template(template, values)


# ---------------------------------------------------------------------------
# Date coercion
# ---------------------------------------------------------------------------


def _coerce_day(value: Any, what: str) -> date:
    """Coerce a stored date value to a calendar date.

    Raises:
        DataError: If the value is missing or not a recognizable date.
    """
    if value is None or value == "":
        raise DataError(f"Missing date for {what}")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if _DATE_ONLY.match(value):
            try:
                return date.fromisoformat(value)
            except ValueError:
                pass
        else:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
            except ValueError:
                pass
    raise DataError(f"Invalid date format for {what}: {value!r}")


def _parse_time(value: Any, which: str) -> time:
    match = _TIME.match(str(value).strip())
    if not match:
        raise DataError(f"Invalid time format for {which}: {value!r}")
    hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise DataError(f"Invalid time format for {which}: {value!r}")
    return time(hour, minute, second)


class EventTransformerBuilder:
    """Build record → CalendarEvent transformers from ``TransformerConfig``.

    Args:
        resolver: Calendar id resolver.
        timezone: IANA zone attached to every timed event.
    """

    def __init__(self, resolver: CalendarIdResolver, timezone: str) -> None:
        try:
            self._tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone: {timezone!r}") from None
        self._tz_name = timezone
        self._resolver = resolver

    def build(self, config: TransformerConfig) -> Transformer:
        """Return ``transform(record, store) -> CalendarEvent`` for ``config``."""

        def transform(record: dict, store: RecordStore) -> CalendarEvent:
            values = {name: store.value_of(record, key) for name, key in config.properties.items()}

            calendar_id = self._resolver.resolve(config.calendar_key, record, store)
            if not calendar_id:
                raise ConfigurationError(f"Calendar ID not configured for {config.calendar_key}")

            if config.event_type is EventType.ALL_DAY:
                start, end = self._all_day_bounds(config, record, store)
            else:
                start, end = self._timed_bounds(config, record, store)

            summary = render(config.summary, values)
            if not summary.strip():
                summary = config.fallback_summary

            return CalendarEvent(
                calendar_id=calendar_id,
                summary=summary,
                description=render(config.description, values),
                start=start,
                end=end,
            )

        return transform

    # ------------------------------------------------------------------

    def _all_day_bounds(self, config: TransformerConfig, record: dict, store: RecordStore) -> tuple[EventTime, EventTime]:
        first = _coerce_day(store.value_of(record, config.start_prop), "all-day event")
        last = first
        if config.end_prop is not None:
            last = _coerce_day(store.value_of(record, config.end_prop), "all-day event end")
            if last < first:
                raise DataError(f"All-day event ends ({last}) before it starts ({first})")
        # end date is exclusive
        return (
            EventTime(date=first.isoformat()),
            EventTime(date=(last + timedelta(days=1)).isoformat()),
        )

    def _timed_bounds(self, config: TransformerConfig, record: dict, store: RecordStore) -> tuple[EventTime, EventTime]:
        start = self._resolve_datetime(config.start_prop, record, store, "start")

        if config.end_prop is not None:
            end = self._resolve_datetime(config.end_prop, record, store, "end")
            # A session split across date + time that runs past midnight
            if end < start and isinstance(config.end_prop, DateTimeRef):
                end += timedelta(days=1)
        else:
            minutes = store.value_of(record, config.end_from_duration)
            try:
                end = start + timedelta(minutes=float(minutes))
            except (TypeError, ValueError):
                raise DataError(
                    f"Missing end date/time for timed event: duration is {minutes!r}"
                ) from None

        if end < start:
            raise DataError(f"Event end {end.isoformat()} precedes start {start.isoformat()}")

        return (
            EventTime(date_time=start.isoformat(), time_zone=self._tz_name),
            EventTime(date_time=end.isoformat(), time_zone=self._tz_name),
        )

    def _resolve_datetime(self, ref: PropertyRef, record: dict, store: RecordStore, which: str) -> datetime:
        if isinstance(ref, DateTimeRef):
            day_value = store.value_of(record, ref.date)
            time_value = store.value_of(record, ref.time)
            if not day_value or not time_value:
                raise DataError(f"Missing {which} date/time for timed event")
            day = _coerce_day(day_value, f"event {which}")
            return datetime.combine(day, _parse_time(time_value, which), tzinfo=self._tz)

        value = store.value_of(record, ref)
        if not value:
            raise DataError(f"Missing {which} date/time for timed event")
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            except ValueError:
                raise DataError(f"Invalid date format for event {which}: {value!r}") from None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=self._tz)
        return parsed.astimezone(self._tz)
