"""Lifelog Sync API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.config import get_settings
from src.dependencies import get_config
from src.routers import health, sync

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("lifelog")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logging.getLogger("lifelog").setLevel(settings.log_level.upper())
    logger.info(
        "Starting Lifelog Sync API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    # Fail at startup on a broken sync config
    config = get_config()
    logger.info("Sources with a database: %s", ", ".join(config.configured_sources()) or "none")
    yield
    logger.info("Lifelog Sync API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Lifelog Sync API",
        description=(
            "Reconciles sleep, workout, body-weight, gaming and source-control "
            "records into a page store and derives calendar events from them."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Health check (outside the v1 prefix) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    app.include_router(sync.router, prefix="/api/v1")

    return app


app = create_app()
