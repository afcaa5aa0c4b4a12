"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings, LoadedConfig

router = APIRouter(tags=["system"])
logger = logging.getLogger("lifelog.health")


@router.get("/health")
async def health_check(settings: AppSettings, config: LoadedConfig) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports the loaded sync config and which sources have a database.
    """
    configured = config.configured_sources()
    return {
        "status": "healthy" if configured else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "config_version": config.version,
        "timezone": config.timezone,
        "configured_sources": configured,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
