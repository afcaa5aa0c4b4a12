"""Generic per-source accessor for records in the destination page store.

One ``RecordStore`` serves any source: everything source-specific comes from a
``DatabaseDescriptor`` (which property holds the unique id, the date and the
sync status) and the source's ``PropertyConfig``.

Sync status is tracked in one of three ways, detected once at construction:

    checkbox  — a boolean "Calendar Created" style property
    event_id  — an opaque external calendar event id; empty = unsynced
    hybrid    — both; the checkbox decides what counts as unsynced
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from src.lifelog.base import PageStore
from src.lifelog.errors import ConfigurationError, DataError
from src.lifelog.properties import PropertyConfig, PropertyType, extract_property

logger = logging.getLogger("lifelog.record_store")


class UniqueIdType(str, Enum):
    TEXT = "text"
    NUMBER = "number"


class StatusPattern(str, Enum):
    CHECKBOX = "checkbox"
    EVENT_ID = "event_id"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class DatabaseDescriptor:
    """Which properties a source database uses for identity, date and status.

    All names are property config keys, not display names.
    """

    date_property: str
    unique_id_property: str | None = None
    unique_id_type: UniqueIdType = UniqueIdType.TEXT
    status_property: str | None = None
    calendar_event_id_property: str | None = None

    def __post_init__(self) -> None:
        if not self.status_property and not self.calendar_event_id_property:
            raise ConfigurationError(
                "Database descriptor needs a status_property, a "
                "calendar_event_id_property, or both"
            )

    @property
    def status_pattern(self) -> StatusPattern:
        if self.status_property and self.calendar_event_id_property:
            return StatusPattern.HYBRID
        if self.calendar_event_id_property:
            return StatusPattern.EVENT_ID
        return StatusPattern.CHECKBOX


_ID_FILTER_KEYS = {
    PropertyType.TITLE: "title",
    PropertyType.TEXT: "rich_text",
    PropertyType.RICH_TEXT: "rich_text",
    PropertyType.NUMBER: "number",
}


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class RecordStore:
    """CRUD, dedup lookup and status updates for one source database.

    Usage::

        store = RecordStore("oura", database_id, descriptor, properties, client)
        existing = await store.find_by_unique_id("sleep-123")
        for page in await store.query_unsynced(start, end):
            ...
            await store.mark_synced(page["id"], record=page)
    """

    def __init__(
        self,
        source_key: str,
        database_id: str | None,
        descriptor: DatabaseDescriptor,
        properties: PropertyConfig,
        client: PageStore,
        *,
        page_delay_s: float = 0.0,
    ) -> None:
        if not database_id:
            raise ConfigurationError(f"Database ID not configured for source: {source_key}")

        self.source_key = source_key
        self.database_id = database_id
        self.descriptor = descriptor
        self.properties = properties
        self._client = client
        self._page_delay_s = page_delay_s
        # page id -> event id written this run (None for checkbox-only)
        self._synced: dict[str, str | None] = {}

        self._validate()
        self.status_pattern = descriptor.status_pattern
        logger.debug("RecordStore %s uses %s status pattern", source_key, self.status_pattern.value)

    def _validate(self) -> None:
        d = self.descriptor
        date_desc = self.properties.descriptor(d.date_property)
        if date_desc.type is not PropertyType.DATE:
            raise ConfigurationError(
                f"{self.source_key}: date_property '{d.date_property}' must be a date property"
            )

        if d.unique_id_property:
            id_desc = self.properties.descriptor(d.unique_id_property)
            if id_desc.type not in _ID_FILTER_KEYS:
                raise ConfigurationError(
                    f"{self.source_key}: unique id property '{d.unique_id_property}' "
                    f"has unsupported type {id_desc.type.value}"
                )
            if (d.unique_id_type is UniqueIdType.NUMBER) != (id_desc.type is PropertyType.NUMBER):
                raise ConfigurationError(
                    f"{self.source_key}: unique_id_type '{d.unique_id_type.value}' does not "
                    f"match property type '{id_desc.type.value}'"
                )

        for key in (d.status_property, d.calendar_event_id_property):
            if key and not self.properties.is_enabled(key):
                raise ConfigurationError(
                    f"{self.source_key}: status property '{key}' must be enabled"
                )
        if d.status_property and self.properties.descriptor(d.status_property).type is not PropertyType.CHECKBOX:
            raise ConfigurationError(
                f"{self.source_key}: status_property '{d.status_property}' must be a checkbox"
            )

    # ------------------------------------------------------------------
    # Property access
    # ------------------------------------------------------------------

    def extract_property(self, record: dict, name: str) -> Any:
        """Read a property by display name."""
        return extract_property(record, name)

    def value_of(self, record: dict, key: str) -> Any:
        """Read a property by config key."""
        return extract_property(record, self.properties.name_of(key))

    def extract_event_id(self, record: dict) -> str | None:
        key = self.descriptor.calendar_event_id_property
        if not key:
            return None
        return self.value_of(record, key) or None

    def is_synced(self, record: dict) -> bool:
        if self.status_pattern is StatusPattern.EVENT_ID:
            return bool(self.extract_event_id(record))
        return self.value_of(record, self.descriptor.status_property) is True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find_by_unique_id(self, unique_id: str | int | float) -> dict | None:
        """Return the page carrying ``unique_id``, or None.

        Numeric ids are compared numerically and text ids by exact match.
        Returns None when the source has no unique-id property configured.

        Raises:
            DataError: If a numeric id cannot be parsed.
        """
        key = self.descriptor.unique_id_property
        if not key:
            return None

        descriptor = self.properties.descriptor(key)
        filter_key = _ID_FILTER_KEYS[descriptor.type]

        if self.descriptor.unique_id_type is UniqueIdType.NUMBER:
            try:
                wanted: Any = float(unique_id)
            except (TypeError, ValueError):
                raise DataError(
                    f"{self.source_key}: unique id {unique_id!r} is not numeric"
                ) from None
            condition = {"equals": wanted}

            def matches(value: Any) -> bool:
                return value is not None and float(value) == wanted
        else:
            wanted = str(unique_id)
            condition = {"equals": wanted}

            def matches(value: Any) -> bool:
                return value == wanted

        results = await self._query_all(
            {"property": descriptor.name, filter_key: condition}
        )
        for page in results:
            if matches(extract_property(page, descriptor.name)):
                return page
        return None

    async def query_unsynced(
        self, start_date: date | datetime, end_date: date | datetime
    ) -> list[dict]:
        """Return every unsynced page dated within [start_date, end_date].

        Raises:
            DataError: If the range is inverted.
        """
        start, end = _as_date(start_date), _as_date(end_date)
        if start > end:
            raise DataError(f"start_date {start} is after end_date {end}")

        date_name = self.properties.name_of(self.descriptor.date_property)
        conditions: list[dict] = [
            {"property": date_name, "date": {"on_or_after": start.isoformat()}},
            {"property": date_name, "date": {"on_or_before": end.isoformat()}},
        ]
        if self.status_pattern is StatusPattern.EVENT_ID:
            conditions.append({
                "property": self.properties.name_of(self.descriptor.calendar_event_id_property),
                "rich_text": {"is_empty": True},
            })
        else:
            conditions.append({
                "property": self.properties.name_of(self.descriptor.status_property),
                "checkbox": {"equals": False},
            })

        results = await self._query_all({"and": conditions})
        logger.debug(
            "%s: %d unsynced records between %s and %s", self.source_key, len(results), start, end
        )
        return results

    async def _query_all(self, filter: dict) -> list[dict]:
        """Follow the store's cursor until every page of results is read."""
        results: list[dict] = []
        cursor: str | None = None
        while True:
            page = await self._client.query(self.database_id, filter, start_cursor=cursor)
            results.extend(page.results)
            if not page.has_more or not page.next_cursor:
                return results
            cursor = page.next_cursor
            if self._page_delay_s:
                await asyncio.sleep(self._page_delay_s)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, values: dict[str, Any]) -> dict:
        """Create a page from config-key values (disabled properties dropped)."""
        payload = self.properties.build_payload(values)
        return await self._client.create(self.database_id, payload)

    async def update(self, page_id: str, values: dict[str, Any]) -> dict:
        """Update a page from config-key values (disabled properties dropped)."""
        payload = self.properties.build_payload(values)
        return await self._client.update(page_id, payload)

    async def mark_synced(
        self, page_id: str, event_id: str | None = None, record: dict | None = None
    ) -> dict | None:
        """Record that a page has a calendar event.

        Idempotent: a page already marked in this run with the same event
        id, or a ``record`` that already shows the same synced state, is left
        alone and None is returned.

        Args:
            page_id:  Page to update.
            event_id: External calendar event id (required for event_id/hybrid).
            record:   The page as last read, used to detect a no-op.

        Raises:
            DataError: If the pattern needs an event id and none was given.
        """
        if page_id in self._synced and event_id in (None, self._synced[page_id]):
            logger.debug("%s: page %s already marked synced", self.source_key, page_id)
            return None

        if record is not None and self.is_synced(record):
            current_id = self.extract_event_id(record)
            if event_id is None or event_id == current_id:
                self._synced[page_id] = current_id
                return None

        values: dict[str, Any] = {}
        if self.status_pattern in (StatusPattern.CHECKBOX, StatusPattern.HYBRID):
            values[self.descriptor.status_property] = True
        if self.status_pattern in (StatusPattern.EVENT_ID, StatusPattern.HYBRID):
            if not event_id:
                raise DataError(
                    f"{self.source_key}: an event id is required to mark page {page_id} synced"
                )
            values[self.descriptor.calendar_event_id_property] = event_id

        updated = await self.update(page_id, values)
        self._synced[page_id] = event_id
        return updated
