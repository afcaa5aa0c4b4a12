"""Tests for the property registry, payload envelopes and property extraction."""

from __future__ import annotations

from datetime import date

import pytest

from src.lifelog.errors import ConfigurationError, DataError
from src.lifelog.properties import (
    PropertyConfig,
    PropertyDescriptor,
    PropertyType,
    extract_property,
    format_value,
)


@pytest.fixture
def registry() -> PropertyConfig:
    return PropertyConfig(
        source="test",
        descriptors={
            "title": PropertyDescriptor("Name", PropertyType.TITLE),
            "notes": PropertyDescriptor("Notes", PropertyType.RICH_TEXT),
            "count": PropertyDescriptor("Count", PropertyType.NUMBER),
            "day": PropertyDescriptor("Day", PropertyType.DATE),
            "done": PropertyDescriptor("Done", PropertyType.CHECKBOX),
            "kind": PropertyDescriptor("Kind", PropertyType.SELECT, options=("A", "B")),
            "legacy": PropertyDescriptor("Legacy", PropertyType.NUMBER, enabled=False),
        },
        field_mappings={"title": "name", "count": "n"},
    )


class TestPropertyConfig:
    def test_field_mapping_to_unknown_key_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown properties: ghost"):
            PropertyConfig(
                source="test",
                descriptors={"a": PropertyDescriptor("A", PropertyType.TEXT)},
                field_mappings={"ghost": "x"},
            )

    def test_unknown_key_lookup(self, registry: PropertyConfig) -> None:
        with pytest.raises(ConfigurationError, match="'missing' is not configured"):
            registry.descriptor("missing")

    def test_enabled_keys_exclude_disabled(self, registry: PropertyConfig) -> None:
        assert "legacy" not in registry.enabled_keys()
        assert registry.name_of("legacy") == "Legacy"

    def test_build_payload_uses_display_names(self, registry: PropertyConfig) -> None:
        payload = registry.build_payload({"title": "Run", "count": 3, "day": date(2025, 10, 28)})
        assert payload == {
            "Name": {"title": [{"text": {"content": "Run"}}]},
            "Count": {"number": 3},
            "Day": {"date": {"start": "2025-10-28"}},
        }

    def test_build_payload_drops_disabled_and_none(self, registry: PropertyConfig) -> None:
        payload = registry.build_payload({"legacy": 10, "count": None, "done": False})
        assert payload == {"Done": {"checkbox": False}}

    def test_build_payload_rejects_unknown_key(self, registry: PropertyConfig) -> None:
        with pytest.raises(ConfigurationError):
            registry.build_payload({"nope": 1})


class TestFormatValue:
    def test_empty_rich_text(self) -> None:
        desc = PropertyDescriptor("Notes", PropertyType.RICH_TEXT)
        assert format_value(desc, "") == {"rich_text": []}

    def test_long_text_is_truncated(self) -> None:
        desc = PropertyDescriptor("Notes", PropertyType.TEXT)
        formatted = format_value(desc, "x" * 2500)
        assert len(formatted["rich_text"][0]["text"]["content"]) == 2000

    def test_numeric_string_is_coerced(self) -> None:
        desc = PropertyDescriptor("Count", PropertyType.NUMBER)
        assert format_value(desc, "4.5") == {"number": 4.5}

    @pytest.mark.parametrize("value", [True, "many"])
    def test_bad_numbers(self, value: object) -> None:
        desc = PropertyDescriptor("Count", PropertyType.NUMBER)
        with pytest.raises(DataError):
            format_value(desc, value)

    def test_empty_select_and_date_are_omitted(self) -> None:
        assert format_value(PropertyDescriptor("Kind", PropertyType.SELECT), "") is None
        assert format_value(PropertyDescriptor("Day", PropertyType.DATE), "") is None

    def test_select(self) -> None:
        desc = PropertyDescriptor("Kind", PropertyType.SELECT)
        assert format_value(desc, "Work") == {"select": {"name": "Work"}}


class TestExtractProperty:
    @pytest.fixture
    def page(self) -> dict:
        return {
            "id": "p1",
            "properties": {
                "Name": {"type": "title", "title": [{"plain_text": "Morning "}, {"plain_text": "Run"}]},
                "Notes": {"type": "rich_text", "rich_text": []},
                "Count": {"type": "number", "number": 7},
                "Day": {"type": "date", "date": {"start": "2025-10-28"}},
                "Done": {"type": "checkbox", "checkbox": True},
                "Kind": {"type": "select", "select": {"name": "Work"}},
                "Empty Kind": {"type": "select", "select": None},
                "Tags": {"type": "multi_select", "multi_select": [{"name": "a"}, {"name": "b"}]},
                "Link": {"type": "url", "url": "https://example.com"},
                "Formula": {"type": "formula", "formula": {"number": 1}},
            },
        }

    def test_reads_each_type(self, page: dict) -> None:
        assert extract_property(page, "Name") == "Morning Run"
        assert extract_property(page, "Notes") == ""
        assert extract_property(page, "Count") == 7
        assert extract_property(page, "Day") == "2025-10-28"
        assert extract_property(page, "Done") is True
        assert extract_property(page, "Kind") == "Work"
        assert extract_property(page, "Tags") == ["a", "b"]
        assert extract_property(page, "Link") == "https://example.com"

    def test_absent_or_unsupported_is_none(self, page: dict) -> None:
        assert extract_property(page, "Missing") is None
        assert extract_property(page, "Empty Kind") is None
        assert extract_property(page, "Formula") is None
        assert extract_property({}, "Name") is None
