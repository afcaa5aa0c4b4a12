"""Canonical data models and collaborator interfaces for the lifelog sync engine.

Raw items from every source are collapsed into ``DestinationRecord`` at the
ingestion boundary by an ``IngestAdapter``.  From there on nothing branches on
source identity: the record store, event builder and orchestrator only see
config keys, typed pages and ``CalendarEvent`` values.

The page store and the calendar are external collaborators reached through the
``PageStore`` and ``CalendarClient`` ABCs.  Source fetchers are plain async
callables injected per source.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from src.lifelog.errors import DataError

if TYPE_CHECKING:
    from src.lifelog.date_normalizer import DateNormalizer
    from src.lifelog.properties import PropertyConfig

logger = logging.getLogger("lifelog")

#: ``async fetch(start_date, end_date) -> list[dict]``
SourceFetcher = Callable[[date, date], Awaitable[list[dict]]]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class DestinationRecord:
    """Canonical shape of one record on its way into the page store.

    Attributes:
        source:       Source key.
        unique_id:    Stable source-provided identifier used for dedup.
        date:         Canonical calendar date.
        values:       Config key → plain value (pre-payload).
        display_name: Human-readable label for results and logs.
    """

    source: str
    unique_id: str | int | float
    date: date
    values: dict[str, Any] = field(default_factory=dict)
    display_name: str = ""


# ---------------------------------------------------------------------------
# Calendar events
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    ALL_DAY = "all_day"
    DATE_TIME = "date_time"


@dataclass(frozen=True)
class EventTime:
    """Start or end of a calendar event: either all-day or timed, never both."""

    date: str | None = None
    date_time: str | None = None
    time_zone: str | None = None

    def __post_init__(self) -> None:
        if (self.date is None) == (self.date_time is None):
            raise DataError("EventTime needs exactly one of 'date' or 'date_time'")
        if self.date is not None and self.time_zone is not None:
            raise DataError("All-day EventTime cannot carry a time zone")

    @property
    def is_all_day(self) -> bool:
        return self.date is not None

    def to_api(self) -> dict:
        if self.is_all_day:
            return {"date": self.date}
        body = {"dateTime": self.date_time}
        if self.time_zone:
            body["timeZone"] = self.time_zone
        return body


@dataclass(frozen=True)
class CalendarEvent:
    """A calendar event derived from a stored record."""

    calendar_id: str
    summary: str
    description: str
    start: EventTime
    end: EventTime

    def __post_init__(self) -> None:
        if self.start.is_all_day != self.end.is_all_day:
            raise DataError("Event start and end must both be all-day or both timed")

    @property
    def event_type(self) -> EventType:
        return EventType.ALL_DAY if self.start.is_all_day else EventType.DATE_TIME

    def to_api(self) -> dict:
        """Request body for the calendar API (calendar id travels separately)."""
        return {
            "summary": self.summary,
            "description": self.description,
            "start": self.start.to_api(),
            "end": self.end.to_api(),
        }


# ---------------------------------------------------------------------------
# Sync results
# ---------------------------------------------------------------------------


@dataclass
class SyncItem:
    """Outcome entry for one created or skipped record."""

    item_id: str
    display_name: str = ""
    page_id: str | None = None
    calendar_id: str | None = None
    event_id: str | None = None
    summary: str | None = None
    reason: str | None = None
    updated: bool = False


@dataclass
class SyncErrorEntry:
    """Outcome entry for one record that failed."""

    item_id: str
    error: str
    index: int


@dataclass
class SyncResult:
    """Aggregate outcome of one batch.

    ``len(created) + len(skipped) + len(errors) == total`` holds once a batch
    has finished.
    """

    source: str
    total: int = 0
    created: list[SyncItem] = field(default_factory=list)
    skipped: list[SyncItem] = field(default_factory=list)
    errors: list[SyncErrorEntry] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return len(self.created) + len(self.skipped) + len(self.errors) == self.total

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


@dataclass
class QueryPage:
    """One page of query results from the page store."""

    results: list[dict]
    has_more: bool = False
    next_cursor: str | None = None


class PageStore(ABC):
    """Destination page store (databases of typed-property pages)."""

    @abstractmethod
    async def query(
        self, database_id: str, filter: dict | None = None, start_cursor: str | None = None
    ) -> QueryPage:
        """Return one page of pages matching ``filter``."""

    @abstractmethod
    async def create(self, database_id: str, properties: dict) -> dict:
        """Create a page and return it."""

    @abstractmethod
    async def update(self, page_id: str, properties: dict) -> dict:
        """Update a page's properties and return it."""


class CalendarClient(ABC):
    """Secondary calendar that receives derived events."""

    @abstractmethod
    async def create_event(self, calendar_id: str, event: CalendarEvent) -> str:
        """Create an event and return its external id."""

    @abstractmethod
    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event.  Returns False if it no longer existed."""


# ---------------------------------------------------------------------------
# Ingestion adapters
# ---------------------------------------------------------------------------


class IngestAdapter(ABC):
    """Collapse one source's raw items into ``DestinationRecord`` values.

    Subclasses implement:
        - unique_id()
        - raw_date()
        - to_values()

    Values are keyed by property config keys.  Fields listed in the source's
    ``field_mappings`` can be copied straight across with ``_mapped()``.
    """

    #: Source key matching the config (e.g. 'oura').
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Source"

    def __init__(self, normalizer: DateNormalizer, properties: PropertyConfig) -> None:
        self._normalizer = normalizer
        self._properties = properties

    @abstractmethod
    def unique_id(self, raw: dict, day: date) -> str | int | float | None:
        """Return the unique id of a raw item (``day`` is its canonical date)."""

    @abstractmethod
    def raw_date(self, raw: dict) -> Any:
        """Return the raw date value as the source encodes it."""

    @abstractmethod
    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        """Map a raw item to config-key values.  Pure, no I/O."""

    def display_name(self, raw: dict, day: date) -> str:
        return f"{self.DISPLAY_NAME} {day.isoformat()}"

    def to_destination(self, raw: dict) -> DestinationRecord:
        """Normalize a raw item into a DestinationRecord.

        Raises:
            DataError: If the unique id or date is missing or malformed.
        """
        if not isinstance(raw, dict):
            raise DataError(f"{self.DISPLAY_NAME}: expected a mapping, got {type(raw).__name__}")
        day = self._normalizer.normalize(self.SOURCE_ID, self.raw_date(raw))
        uid = self.unique_id(raw, day)
        if uid is None or uid == "":
            raise DataError(f"{self.DISPLAY_NAME}: record has no unique id")
        return DestinationRecord(
            source=self.SOURCE_ID,
            unique_id=uid,
            date=day,
            values=self.to_values(raw, day),
            display_name=self.display_name(raw, day),
        )

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _mapped(self, raw: dict) -> dict[str, Any]:
        """Copy every field listed in ``field_mappings`` from the raw item."""
        return {
            key: raw.get(source_field)
            for key, source_field in self._properties.field_mappings.items()
            if source_field in raw
        }

    @staticmethod
    def _safe_int(value: object) -> int | None:
        """Safely coerce a value to int, returning None on failure."""
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _safe_float(value: object) -> float | None:
        """Safely coerce a value to float, returning None on failure."""
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
