"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.lifelog.base import CalendarClient, PageStore
from src.lifelog.clients.google_calendar import GoogleCalendarClient
from src.lifelog.clients.notion import NotionPageStore
from src.lifelog.config_loader import SyncConfig, load_sync_config
from src.lifelog.sync.orchestrator import SyncOrchestrator


@lru_cache
def get_config() -> SyncConfig:
    """Load the sync config once per process."""
    return load_sync_config(get_settings().sync_config_path)


def get_page_store(settings: Annotated[Settings, Depends(get_settings)]) -> PageStore:
    return NotionPageStore(settings.notion_token, settings.notion_version)


def get_calendar_client(settings: Annotated[Settings, Depends(get_settings)]) -> CalendarClient:
    return GoogleCalendarClient(settings.google_calendar_access_token)


def get_orchestrator(
    config: Annotated[SyncConfig, Depends(get_config)],
    page_store: Annotated[PageStore, Depends(get_page_store)],
    calendar: Annotated[CalendarClient, Depends(get_calendar_client)],
) -> SyncOrchestrator:
    return SyncOrchestrator(config, page_store, calendar)


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
LoadedConfig = Annotated[SyncConfig, Depends(get_config)]
Orchestrator = Annotated[SyncOrchestrator, Depends(get_orchestrator)]
