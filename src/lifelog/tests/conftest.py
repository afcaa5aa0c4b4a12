"""Shared fixtures, in-memory collaborators and raw source payloads for lifelog tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.lifelog.base import CalendarClient, CalendarEvent, PageStore, QueryPage
from src.lifelog.config_loader import SyncConfig, load_sync_config
from src.lifelog.properties import extract_property
from src.lifelog.sync.orchestrator import SyncOrchestrator

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Environment the bundled sync_config.yaml resolves ids from
TEST_ENV = {
    "NOTION_SLEEP_DATABASE_ID": "db-sleep",
    "NOTION_WORKOUTS_DATABASE_ID": "db-workouts",
    "NOTION_BODY_WEIGHT_DATABASE_ID": "db-weight",
    "NOTION_VIDEO_GAMES_DATABASE_ID": "db-games",
    "NOTION_PRS_DATABASE_ID": "db-prs",
    "NORMAL_WAKE_UP_CALENDAR_ID": "cal-normal",
    "SLEEP_IN_CALENDAR_ID": "cal-sleep-in",
    "WORKOUT_CALENDAR_ID": "cal-workouts",
    "BODY_WEIGHT_CALENDAR_ID": "cal-weight",
    "VIDEO_GAMES_CALENDAR_ID": "cal-games",
    "PERSONAL_PRS_CALENDAR_ID": "cal-personal-prs",
    "WORK_PRS_CALENDAR_ID": "cal-work-prs",
}


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


def _to_read_shape(properties: dict) -> dict:
    """Write envelope {"Name": {"title": [...]}} → read envelope with "type"."""
    read: dict = {}
    for name, envelope in properties.items():
        (ptype, value), = envelope.items()
        read[name] = {"type": ptype, ptype: copy.deepcopy(value)}
    return read


def _matches(page: dict, filter: dict | None) -> bool:
    """Evaluate the subset of the query filter language the store emits."""
    if not filter:
        return True
    if "and" in filter:
        return all(_matches(page, f) for f in filter["and"])
    if "or" in filter:
        return any(_matches(page, f) for f in filter["or"])

    value = extract_property(page, filter["property"])
    ptype, cond = next(
        (k, v) for k, v in filter.items() if k != "property"
    )
    if "equals" in cond:
        if ptype == "number":
            return value is not None and float(value) == float(cond["equals"])
        if ptype == "checkbox":
            return bool(value) == cond["equals"]
        return value == cond["equals"]
    if "is_empty" in cond:
        return not value
    if "on_or_after" in cond:
        return value is not None and value[:10] >= cond["on_or_after"]
    if "on_or_before" in cond:
        return value is not None and value[:10] <= cond["on_or_before"]
    raise AssertionError(f"Unsupported filter condition: {filter}")


class FakePageStore(PageStore):
    """Page store kept in memory; evaluates filters and paginates by cursor."""

    def __init__(self, page_size: int = 100) -> None:
        self.page_size = page_size
        self.pages: dict[str, dict] = {}
        self.database_of: dict[str, str] = {}
        self.created: list[tuple[str, dict]] = []
        self.updated: list[tuple[str, dict]] = []
        self.queries: list[tuple[str, dict | None, str | None]] = []
        self._counter = 0

    def seed(self, database_id: str, properties: dict) -> dict:
        """Insert a page directly (write-envelope properties), bypassing call logs."""
        self._counter += 1
        page_id = f"page-{self._counter}"
        self.pages[page_id] = {"id": page_id, "properties": _to_read_shape(properties)}
        self.database_of[page_id] = database_id
        return copy.deepcopy(self.pages[page_id])

    def in_database(self, database_id: str) -> list[dict]:
        return [p for pid, p in self.pages.items() if self.database_of[pid] == database_id]

    async def query(
        self, database_id: str, filter: dict | None = None, start_cursor: str | None = None
    ) -> QueryPage:
        self.queries.append((database_id, filter, start_cursor))
        matching = [p for p in self.in_database(database_id) if _matches(p, filter)]
        start = int(start_cursor) if start_cursor else 0
        chunk = matching[start:start + self.page_size]
        end = start + len(chunk)
        has_more = end < len(matching)
        return QueryPage(
            results=copy.deepcopy(chunk),
            has_more=has_more,
            next_cursor=str(end) if has_more else None,
        )

    async def create(self, database_id: str, properties: dict) -> dict:
        self.created.append((database_id, copy.deepcopy(properties)))
        return self.seed(database_id, properties)

    async def update(self, page_id: str, properties: dict) -> dict:
        self.updated.append((page_id, copy.deepcopy(properties)))
        self.pages[page_id]["properties"].update(_to_read_shape(properties))
        return copy.deepcopy(self.pages[page_id])


class FakeCalendar(CalendarClient):
    """Calendar kept in memory."""

    def __init__(self) -> None:
        self.events: dict[str, tuple[str, CalendarEvent]] = {}
        self.deleted: list[tuple[str, str]] = []
        self._counter = 0

    async def create_event(self, calendar_id: str, event: CalendarEvent) -> str:
        self._counter += 1
        event_id = f"evt-{self._counter}"
        self.events[event_id] = (calendar_id, event)
        return event_id

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        self.deleted.append((calendar_id, event_id))
        return self.events.pop(event_id, None) is not None


# ---------------------------------------------------------------------------
# Config / collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_env() -> dict[str, str]:
    return dict(TEST_ENV)


@pytest.fixture
def sync_config(test_env: dict[str, str]) -> SyncConfig:
    """The bundled sync config with every id resolved."""
    return load_sync_config(environ=test_env)


@pytest.fixture
def page_store() -> FakePageStore:
    return FakePageStore()


@pytest.fixture
def paged_store() -> FakePageStore:
    """A page store that returns two results per page."""
    return FakePageStore(page_size=2)


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def sleep_mock() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def orchestrator(
    sync_config: SyncConfig, page_store: FakePageStore, calendar: FakeCalendar, sleep_mock: AsyncMock
) -> SyncOrchestrator:
    return SyncOrchestrator(sync_config, page_store, calendar, sleep=sleep_mock)


# ---------------------------------------------------------------------------
# JSON fixture loaders
# ---------------------------------------------------------------------------


def _load(name: str) -> Any:
    return json.loads((FIXTURES_DIR / name).read_text())


@pytest.fixture
def oura_sleep_raw() -> list[dict]:
    return _load("oura_sleep.json")


@pytest.fixture
def strava_raw() -> list[dict]:
    return _load("strava_activities.json")


@pytest.fixture
def withings_raw() -> list[dict]:
    return _load("withings_measures.json")


@pytest.fixture
def steam_raw() -> list[dict]:
    return _load("steam_sessions.json")


@pytest.fixture
def github_raw() -> list[dict]:
    return _load("github_activity.json")


@pytest.fixture
def raw_by_source(
    oura_sleep_raw: list[dict],
    strava_raw: list[dict],
    withings_raw: list[dict],
    steam_raw: list[dict],
    github_raw: list[dict],
) -> dict[str, list[dict]]:
    return {
        "oura": oura_sleep_raw,
        "strava": strava_raw,
        "withings": withings_raw,
        "steam": steam_raw,
        "github": github_raw,
    }
