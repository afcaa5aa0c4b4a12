"""Sync endpoints: ingest pre-fetched source items, publish calendar events."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import LoadedConfig, Orchestrator
from src.lifelog.errors import ConfigurationError, DataError
from src.models.base import ErrorDetail
from src.models.sync import CalendarSyncRequest, RecordSyncRequest, SourceRead, SyncResultRead

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("lifelog.routers.sync")

_ERRORS = {
    404: {"model": ErrorDetail, "description": "Unknown source"},
    500: {"model": ErrorDetail, "description": "Source is not fully configured"},
}


def _require_source(config: LoadedConfig, source: str) -> None:
    if source not in config.integrations:
        raise HTTPException(status_code=404, detail=f"Unknown source: {source}")


@router.get("/sources", response_model=list[SourceRead])
async def list_sources(config: LoadedConfig) -> Any:
    resolver = config.resolver()
    return [
        SourceRead(
            key=key,
            display_name=integration.display_name,
            configured=integration.is_configured,
            status_pattern=integration.descriptor.status_pattern.value,
            calendar_mapping=integration.calendar_mapping,
            calendars_configured=(
                resolver.has_calendars(integration.calendar_mapping)
                if integration.calendar_mapping
                else False
            ),
        )
        for key, integration in config.integrations.items()
    ]


@router.post("/{source}/records", response_model=SyncResultRead, responses=_ERRORS)
async def sync_records(
    source: str, body: RecordSyncRequest, config: LoadedConfig, orchestrator: Orchestrator
) -> Any:
    _require_source(config, source)
    try:
        result = await orchestrator.sync_to_store(source, body.items)
    except ConfigurationError as exc:
        logger.error("Record sync for %s failed: %s", source, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return result.to_dict()


@router.post(
    "/{source}/calendar",
    response_model=SyncResultRead,
    responses={**_ERRORS, 422: {"model": ErrorDetail, "description": "Invalid date range"}},
)
async def sync_calendar(
    source: str, body: CalendarSyncRequest, config: LoadedConfig, orchestrator: Orchestrator
) -> Any:
    _require_source(config, source)
    try:
        result = await orchestrator.sync_to_calendar(source, body.start_date, body.end_date)
    except ConfigurationError as exc:
        logger.error("Calendar sync for %s failed: %s", source, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except DataError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return result.to_dict()
