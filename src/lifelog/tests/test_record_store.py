"""Tests for RecordStore: dedup lookup, unsynced queries and status updates."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from src.lifelog.config_loader import SyncConfig
from src.lifelog.errors import ConfigurationError, DataError
from src.lifelog.properties import PropertyConfig, PropertyDescriptor, PropertyType
from src.lifelog.record_store import (
    DatabaseDescriptor,
    RecordStore,
    StatusPattern,
    UniqueIdType,
)


def _store(config: SyncConfig, source: str, client) -> RecordStore:
    integ = config.integration(source)
    return RecordStore(source, integ.database_id, integ.descriptor, integ.properties, client)


def _workout(store, activity_id, day="2025-10-28", created=False) -> dict:
    return store.seed(
        "db-workouts",
        {
            "Activity Name": {"title": [{"text": {"content": f"Run {activity_id}"}}]},
            "Activity ID": {"number": activity_id},
            "Date": {"date": {"start": day}},
            "Calendar Created": {"checkbox": created},
        },
    )


def _pr(store, uid, day="2025-10-28", created=False, event_id="") -> dict:
    return store.seed(
        "db-prs",
        {
            "Repository": {"title": [{"text": {"content": uid.split("-")[0]}}]},
            "Unique ID": {"rich_text": [{"text": {"content": uid}}]},
            "Date": {"date": {"start": day}},
            "Calendar Created": {"checkbox": created},
            "Calendar Event ID": {"rich_text": [{"text": {"content": event_id}}] if event_id else []},
        },
    )


def _registry(**extra: PropertyDescriptor) -> PropertyConfig:
    descriptors = {
        "day": PropertyDescriptor("Day", PropertyType.DATE),
        "uid": PropertyDescriptor("UID", PropertyType.RICH_TEXT),
        "done": PropertyDescriptor("Done", PropertyType.CHECKBOX),
        "event": PropertyDescriptor("Event", PropertyType.RICH_TEXT),
    }
    descriptors.update(extra)
    return PropertyConfig(source="test", descriptors=descriptors)


class TestDescriptorValidation:
    def test_status_pattern_detection(self) -> None:
        assert DatabaseDescriptor("day", status_property="done").status_pattern is StatusPattern.CHECKBOX
        assert DatabaseDescriptor("day", calendar_event_id_property="event").status_pattern is StatusPattern.EVENT_ID
        assert (
            DatabaseDescriptor("day", status_property="done", calendar_event_id_property="event").status_pattern
            is StatusPattern.HYBRID
        )

    def test_needs_some_status_property(self) -> None:
        with pytest.raises(ConfigurationError):
            DatabaseDescriptor("day", unique_id_property="uid")

    def test_missing_database_id(self, page_store) -> None:
        with pytest.raises(ConfigurationError, match="Database ID not configured for source: test"):
            RecordStore("test", None, DatabaseDescriptor("day", status_property="done"), _registry(), page_store)

    def test_date_property_must_be_a_date(self, page_store) -> None:
        with pytest.raises(ConfigurationError, match="must be a date property"):
            RecordStore("test", "db", DatabaseDescriptor("uid", status_property="done"), _registry(), page_store)

    def test_number_id_type_must_match_property(self, page_store) -> None:
        descriptor = DatabaseDescriptor(
            "day", unique_id_property="uid", unique_id_type=UniqueIdType.NUMBER, status_property="done"
        )
        with pytest.raises(ConfigurationError, match="does not match"):
            RecordStore("test", "db", descriptor, _registry(), page_store)

    def test_status_property_must_be_enabled(self, page_store) -> None:
        registry = _registry(off=PropertyDescriptor("Off", PropertyType.CHECKBOX, enabled=False))
        with pytest.raises(ConfigurationError, match="must be enabled"):
            RecordStore("test", "db", DatabaseDescriptor("day", status_property="off"), registry, page_store)

    def test_status_property_must_be_checkbox(self, page_store) -> None:
        with pytest.raises(ConfigurationError, match="must be a checkbox"):
            RecordStore("test", "db", DatabaseDescriptor("day", status_property="uid"), _registry(), page_store)

    def test_bundled_sources_detect_their_patterns(self, sync_config, page_store) -> None:
        assert _store(sync_config, "oura", page_store).status_pattern is StatusPattern.CHECKBOX
        assert _store(sync_config, "github", page_store).status_pattern is StatusPattern.HYBRID


class TestFindByUniqueId:
    @pytest.mark.asyncio
    async def test_number_id_matches_numerically(self, sync_config, page_store) -> None:
        """A stored 12345 is found by int, float or numeric string."""
        _workout(page_store, 12345)
        store = _store(sync_config, "strava", page_store)
        for wanted in (12345, 12345.0, "12345"):
            page = await store.find_by_unique_id(wanted)
            assert page is not None
            assert store.value_of(page, "activity_id") == 12345

    @pytest.mark.asyncio
    async def test_number_filter_shape(self, sync_config, page_store) -> None:
        store = _store(sync_config, "strava", page_store)
        await store.find_by_unique_id(7)
        _, filter, _ = page_store.queries[-1]
        assert filter == {"property": "Activity ID", "number": {"equals": 7.0}}

    @pytest.mark.asyncio
    async def test_non_numeric_id_for_number_source(self, sync_config, page_store) -> None:
        store = _store(sync_config, "strava", page_store)
        with pytest.raises(DataError, match="not numeric"):
            await store.find_by_unique_id("abc")

    @pytest.mark.asyncio
    async def test_text_id_exact_match(self, sync_config, page_store) -> None:
        _pr(page_store, "acme/api-2025-10-28")
        store = _store(sync_config, "github", page_store)
        assert await store.find_by_unique_id("acme/api-2025-10-28") is not None
        assert await store.find_by_unique_id("acme/api-2025-10-2") is None
        _, filter, _ = page_store.queries[-1]
        assert filter == {"property": "Unique ID", "rich_text": {"equals": "acme/api-2025-10-2"}}

    @pytest.mark.asyncio
    async def test_no_unique_id_property(self, page_store) -> None:
        store = RecordStore("test", "db", DatabaseDescriptor("day", status_property="done"), _registry(), page_store)
        assert await store.find_by_unique_id("x") is None
        assert page_store.queries == []


class TestQueryUnsynced:
    @pytest.mark.asyncio
    async def test_follows_every_cursor(self, sync_config, paged_store) -> None:
        """Five unsynced records at two per page take three queries."""
        for i in range(5):
            _workout(paged_store, 100 + i)
        store = _store(sync_config, "strava", paged_store)
        results = await store.query_unsynced(date(2025, 10, 1), date(2025, 10, 31))
        assert len(results) == 5
        assert [q[2] for q in paged_store.queries] == [None, "2", "4"]

    @pytest.mark.asyncio
    async def test_checkbox_filter_and_range(self, sync_config, page_store) -> None:
        _workout(page_store, 1, day="2025-10-27")
        _workout(page_store, 2, day="2025-10-28", created=True)
        _workout(page_store, 3, day="2025-10-29")
        _workout(page_store, 4, day="2025-11-05")
        store = _store(sync_config, "strava", page_store)

        results = await store.query_unsynced(date(2025, 10, 27), datetime(2025, 10, 31, 12, 0))

        assert sorted(store.value_of(p, "activity_id") for p in results) == [1, 3]
        _, filter, _ = page_store.queries[-1]
        assert filter["and"][2] == {"property": "Calendar Created", "checkbox": {"equals": False}}
        assert filter["and"][1] == {"property": "Date", "date": {"on_or_before": "2025-10-31"}}

    @pytest.mark.asyncio
    async def test_event_id_pattern_filters_on_empty_id(self, page_store) -> None:
        store = RecordStore(
            "test", "db", DatabaseDescriptor("day", calendar_event_id_property="event"), _registry(), page_store
        )
        page_store.seed("db", {"Day": {"date": {"start": "2025-10-28"}}, "Event": {"rich_text": []}})
        page_store.seed(
            "db",
            {"Day": {"date": {"start": "2025-10-28"}}, "Event": {"rich_text": [{"text": {"content": "evt-9"}}]}},
        )
        results = await store.query_unsynced(date(2025, 10, 28), date(2025, 10, 28))
        assert len(results) == 1
        _, filter, _ = page_store.queries[-1]
        assert filter["and"][2] == {"property": "Event", "rich_text": {"is_empty": True}}

    @pytest.mark.asyncio
    async def test_inverted_range(self, sync_config, page_store) -> None:
        store = _store(sync_config, "strava", page_store)
        with pytest.raises(DataError):
            await store.query_unsynced(date(2025, 10, 29), date(2025, 10, 28))


class TestMarkSynced:
    @pytest.mark.asyncio
    async def test_checkbox_pattern(self, sync_config, page_store) -> None:
        page = _workout(page_store, 1)
        store = _store(sync_config, "strava", page_store)
        await store.mark_synced(page["id"])
        assert page_store.updated == [(page["id"], {"Calendar Created": {"checkbox": True}})]

    @pytest.mark.asyncio
    async def test_second_call_is_a_no_op(self, sync_config, page_store) -> None:
        page = _workout(page_store, 1)
        store = _store(sync_config, "strava", page_store)
        await store.mark_synced(page["id"])
        assert await store.mark_synced(page["id"]) is None
        assert len(page_store.updated) == 1

    @pytest.mark.asyncio
    async def test_already_synced_record_is_left_alone(self, sync_config, page_store) -> None:
        page = _workout(page_store, 1, created=True)
        store = _store(sync_config, "strava", page_store)
        assert await store.mark_synced(page["id"], record=page) is None
        assert page_store.updated == []

    @pytest.mark.asyncio
    async def test_hybrid_writes_checkbox_and_event_id(self, sync_config, page_store) -> None:
        page = _pr(page_store, "acme/api-2025-10-28")
        store = _store(sync_config, "github", page_store)
        updated = await store.mark_synced(page["id"], event_id="evt-1", record=page)
        assert page_store.updated[0][1] == {
            "Calendar Created": {"checkbox": True},
            "Calendar Event ID": {"rich_text": [{"text": {"content": "evt-1"}}]},
        }
        assert store.is_synced(updated)
        assert store.extract_event_id(updated) == "evt-1"

    @pytest.mark.asyncio
    async def test_hybrid_replacement_id_is_written(self, sync_config, page_store) -> None:
        """A synced record getting a new event id is updated, not skipped."""
        page = _pr(page_store, "acme/api-2025-10-28", created=True, event_id="evt-old")
        store = _store(sync_config, "github", page_store)
        await store.mark_synced(page["id"], event_id="evt-new", record=page)
        assert store.extract_event_id(page_store.pages[page["id"]]) == "evt-new"

    @pytest.mark.asyncio
    async def test_new_event_id_in_same_run_is_written(self, sync_config, page_store) -> None:
        page = _pr(page_store, "acme/api-2025-10-28")
        store = _store(sync_config, "github", page_store)
        await store.mark_synced(page["id"], event_id="evt-1")
        assert await store.mark_synced(page["id"], event_id="evt-1") is None
        await store.mark_synced(page["id"], event_id="evt-2")
        assert len(page_store.updated) == 2
        assert store.extract_event_id(page_store.pages[page["id"]]) == "evt-2"

    @pytest.mark.asyncio
    async def test_hybrid_requires_event_id(self, sync_config, page_store) -> None:
        page = _pr(page_store, "acme/api-2025-10-28")
        store = _store(sync_config, "github", page_store)
        with pytest.raises(DataError, match="event id is required"):
            await store.mark_synced(page["id"])


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_drops_disabled_properties(self, sync_config, page_store) -> None:
        store = _store(sync_config, "strava", page_store)
        await store.create({"name": "Run", "activity_id": 1, "date": date(2025, 10, 28), "calories": 500})
        _, payload = page_store.created[0]
        assert "Calories" not in payload
        assert payload["Activity ID"] == {"number": 1}
