"""Resolve the destination calendar for a stored record.

Mapping kinds:
    direct          — every record goes to one static calendar id
    property-based  — a routing property's value is looked up in a table
    category-based  — same lookup, used for category-style routing properties

Unmapped or empty routing values resolve to None; whether that is fatal is up
to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from src.lifelog.errors import ConfigurationError

logger = logging.getLogger("lifelog.calendar_resolver")


class MappingKind(str, Enum):
    DIRECT = "direct"
    PROPERTY_BASED = "property-based"
    CATEGORY_BASED = "category-based"


@dataclass(frozen=True)
class CalendarMapping:
    """Routing rule for one mapping key.

    Attributes:
        kind:             Mapping kind.
        calendar_id:      Static id for ``direct`` mappings.
        routing_property: Display name of the property routed on.
        mappings:         Routing value → calendar id (None when unset).
    """

    kind: MappingKind
    calendar_id: str | None = None
    routing_property: str | None = None
    mappings: dict[str, str | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind is not MappingKind.DIRECT and not self.routing_property:
            raise ConfigurationError(
                f"'{self.kind.value}' calendar mapping needs a routing_property"
            )


class PropertyReader(Protocol):
    def extract_property(self, record: dict, name: str) -> Any: ...


class CalendarIdResolver:
    """Look up calendar ids from the configured mapping table."""

    def __init__(self, mappings: dict[str, CalendarMapping]) -> None:
        self._mappings = dict(mappings)

    def mapping(self, mapping_key: str) -> CalendarMapping:
        try:
            return self._mappings[mapping_key]
        except KeyError:
            raise ConfigurationError(
                f"Calendar mapping not found for key: {mapping_key}"
            ) from None

    def resolve(self, mapping_key: str, record: dict, store: PropertyReader) -> str | None:
        """Return the calendar id for ``record``, or None if it is unmapped.

        Args:
            mapping_key: Key into the calendar mapping table.
            record:      Stored page.
            store:       Anything that can extract a property from the page.

        Raises:
            ConfigurationError: If ``mapping_key`` is unknown.
        """
        mapping = self.mapping(mapping_key)

        if mapping.kind is MappingKind.DIRECT:
            return mapping.calendar_id or None

        value = store.extract_property(record, mapping.routing_property)
        if not value:
            logger.debug("No routing value for %s on %s", mapping.routing_property, mapping_key)
            return None
        return mapping.mappings.get(str(value)) or None

    def calendar_ids(self, mapping_key: str) -> list[str]:
        """Return every configured (non-empty) calendar id for a mapping key."""
        mapping = self._mappings.get(mapping_key)
        if mapping is None:
            return []
        if mapping.kind is MappingKind.DIRECT:
            return [mapping.calendar_id] if mapping.calendar_id else []
        return [cid for cid in mapping.mappings.values() if cid]

    def has_calendars(self, mapping_key: str) -> bool:
        return bool(self.calendar_ids(mapping_key))
