"""Lifelog sync engine.

Reconciles time-series records from external sources (Oura sleep, Strava
workouts, Withings body weight, Steam play sessions, GitHub activity) into a
page store, then derives calendar events from the stored records.

Subpackages:
    adapters/ — Per-source ingestion adapters (raw item → DestinationRecord)
    clients/  — httpx clients for the page store and the calendar
    sync/     — Orchestrator, retry with backoff, in-run dedup

Core modules:
    base              — Canonical models and collaborator ABCs
    errors            — ConfigurationError / DataError / TransientTransportError
    config_loader     — Load/validate sync_config.yaml
    date_normalizer   — Raw source date → canonical calendar date
    properties        — Property registry and typed-property envelope
    record_store      — Per-source dedup lookup, unsynced query, status updates
    calendar_resolver — Mapping key → calendar id
    event_builder     — Declarative record → CalendarEvent transformers
    event_families    — One transformer config per source
"""

from src.lifelog.base import (
    CalendarClient,
    CalendarEvent,
    DestinationRecord,
    EventTime,
    EventType,
    IngestAdapter,
    PageStore,
    SyncResult,
)
from src.lifelog.config_loader import SyncConfig, load_sync_config
from src.lifelog.errors import (
    ConfigurationError,
    DataError,
    LifelogError,
    TransientTransportError,
)

__all__ = [
    "CalendarClient",
    "CalendarEvent",
    "DestinationRecord",
    "EventTime",
    "EventType",
    "IngestAdapter",
    "PageStore",
    "SyncResult",
    "SyncConfig",
    "load_sync_config",
    "LifelogError",
    "ConfigurationError",
    "DataError",
    "TransientTransportError",
]
