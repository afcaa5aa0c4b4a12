"""Declarative per-source property registry and the typed-property envelope.

Every destination database is described by a ``PropertyConfig``: a mapping of
config keys (``sleepId``, ``nightOfDate``, ...) to ``PropertyDescriptor``
values carrying the display name, property type and enabled flag, plus an
optional config-key → source-field mapping used by the ingestion adapters.

Disabled descriptors stay in config but never reach a create/update payload.
Pages are read back through ``extract_property`` which understands the
``{"type": ..., <type>: ...}`` envelope used by the page store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from src.lifelog.errors import ConfigurationError, DataError

logger = logging.getLogger("lifelog.properties")

# Page store limit for a single rich_text segment
_MAX_TEXT_LENGTH = 2000


class PropertyType(str, Enum):
    TEXT = "text"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    DATE = "date"
    CHECKBOX = "checkbox"
    SELECT = "select"
    TITLE = "title"


@dataclass(frozen=True)
class PropertyDescriptor:
    """One destination property.

    Attributes:
        name:    Display name of the property in the page store.
        type:    Property type; decides how values are wrapped.
        enabled: Disabled properties are excluded from every write payload.
        options: Allowed select options (informational).
    """

    name: str
    type: PropertyType
    enabled: bool = True
    options: tuple[str, ...] = ()


@dataclass
class PropertyConfig:
    """Property registry for one source database.

    Attributes:
        source:         Source key this registry belongs to (for messages).
        descriptors:    Config key → PropertyDescriptor.
        field_mappings: Config key → field name on the raw source record.
    """

    source: str
    descriptors: dict[str, PropertyDescriptor]
    field_mappings: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [k for k in self.field_mappings if k not in self.descriptors]
        if missing:
            raise ConfigurationError(
                f"Field mappings for '{self.source}' reference unknown properties: "
                f"{', '.join(sorted(missing))}"
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def descriptor(self, key: str) -> PropertyDescriptor:
        """Return the descriptor for a config key.

        Raises:
            ConfigurationError: If the key is not part of this registry.
        """
        try:
            return self.descriptors[key]
        except KeyError:
            raise ConfigurationError(
                f"Property '{key}' is not configured for source '{self.source}'"
            ) from None

    def name_of(self, key: str) -> str:
        """Return the display name for a config key."""
        return self.descriptor(key).name

    def is_enabled(self, key: str) -> bool:
        return self.descriptor(key).enabled

    def enabled_keys(self) -> list[str]:
        return [k for k, d in self.descriptors.items() if d.enabled]

    # ------------------------------------------------------------------
    # Payload construction
    # ------------------------------------------------------------------

    def build_payload(self, values: dict[str, Any]) -> dict[str, dict]:
        """Wrap config-key values into a typed payload keyed by display name.

        Disabled properties and ``None`` values are dropped.  Keys that are
        not part of the registry raise ``ConfigurationError``.

        Args:
            values: Config key → plain Python value.

        Returns:
            Display name → typed-property envelope.
        """
        payload: dict[str, dict] = {}
        for key, value in values.items():
            descriptor = self.descriptor(key)
            if not descriptor.enabled:
                continue
            formatted = format_value(descriptor, value)
            if formatted is not None:
                payload[descriptor.name] = formatted
        return payload


def format_value(descriptor: PropertyDescriptor, value: Any) -> dict | None:
    """Wrap a single value in the envelope for ``descriptor.type``.

    Returns None when the value should be omitted (None, or an empty date).

    Raises:
        DataError: If the value cannot be represented as the property type.
    """
    if value is None:
        return None

    ptype = descriptor.type

    if ptype is PropertyType.TITLE:
        return {"title": [{"text": {"content": str(value)[:_MAX_TEXT_LENGTH]}}]}

    if ptype in (PropertyType.TEXT, PropertyType.RICH_TEXT):
        text = str(value)
        if text == "":
            return {"rich_text": []}
        return {"rich_text": [{"text": {"content": text[:_MAX_TEXT_LENGTH]}}]}

    if ptype is PropertyType.NUMBER:
        if isinstance(value, bool):
            raise DataError(f"Property '{descriptor.name}' expects a number, got a boolean")
        if isinstance(value, (int, float)):
            return {"number": value}
        try:
            return {"number": float(value)}
        except (TypeError, ValueError):
            raise DataError(
                f"Property '{descriptor.name}' expects a number, got {value!r}"
            ) from None

    if ptype is PropertyType.DATE:
        if value == "":
            return None
        if isinstance(value, (date, datetime)):
            return {"date": {"start": value.isoformat()}}
        return {"date": {"start": str(value)}}

    if ptype is PropertyType.CHECKBOX:
        return {"checkbox": bool(value)}

    if ptype is PropertyType.SELECT:
        if value == "":
            return None
        return {"select": {"name": str(value)}}

    raise ConfigurationError(f"Unsupported property type: {ptype}")


def extract_property(page: dict, name: str) -> Any:
    """Read a plain value out of a page's typed-property envelope.

    Args:
        page: Page object with a ``properties`` mapping.
        name: Display name of the property.

    Returns:
        The plain value, or None when the property is absent or empty.
    """
    prop = (page.get("properties") or {}).get(name)
    if not prop:
        return None

    ptype = prop.get("type")
    if ptype in ("title", "rich_text"):
        segments = prop.get(ptype) or []
        return "".join(
            s.get("plain_text") or (s.get("text") or {}).get("content", "")
            for s in segments
        )
    if ptype == "number":
        return prop.get("number")
    if ptype == "select":
        return (prop.get("select") or {}).get("name")
    if ptype == "multi_select":
        return [item.get("name") for item in prop.get("multi_select") or []]
    if ptype == "date":
        return (prop.get("date") or {}).get("start")
    if ptype == "checkbox":
        return prop.get("checkbox")
    if ptype in ("url", "email", "phone_number"):
        return prop.get(ptype)

    logger.debug("Unsupported property type %r on %r", ptype, name)
    return None
