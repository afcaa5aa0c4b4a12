"""Sync orchestrator: reconcile source records into the page store and
derive calendar events from stored records.

Every batch runs the same per-record loop:

    fetched → normalized → looked up → skipped | created | errored

Records are processed strictly one at a time with a fixed delay between them
(``rate_limits.<service>.backoff_ms``).  A failing record is captured in
``SyncResult.errors`` and the batch carries on; only setup problems (unknown
source, missing database id) abort an operation.

Usage::

    orchestrator = SyncOrchestrator(config, NotionPageStore(...), GoogleCalendarClient(...))
    result = await orchestrator.fetch_and_sync("oura", fetch_oura, start, end)
    result = await orchestrator.sync_to_calendar("oura", start, end)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, TypeVar

from src.lifelog.adapters import get_adapter
from src.lifelog.base import (
    CalendarClient,
    IngestAdapter,
    PageStore,
    SourceFetcher,
    SyncErrorEntry,
    SyncItem,
    SyncResult,
)
from src.lifelog.config_loader import SyncConfig
from src.lifelog.errors import ConfigurationError, LifelogError
from src.lifelog.event_builder import EventTransformerBuilder, Transformer
from src.lifelog.event_families import family_for
from src.lifelog.record_store import RecordStore
from src.lifelog.sync.dedup import InMemoryDedupCache, record_key
from src.lifelog.sync.retry import Sleep, with_retries

logger = logging.getLogger("lifelog.sync.orchestrator")

T = TypeVar("T")

# Service keys in the rate_limits section
STORE_SERVICE = "notion"
CALENDAR_SERVICE = "google_calendar"


def _item_label(raw: Any, index: int) -> str:
    if isinstance(raw, dict):
        for key in ("id", "grpid", "activity_id", "unique_id"):
            if raw.get(key) is not None:
                return str(raw[key])
    return f"item-{index}"


class SyncOrchestrator:
    """Run ingestion and calendar batches against injected collaborators.

    Args:
        config:     Validated sync configuration.
        page_store: Destination page store.
        calendar:   Calendar client; only needed for ``sync_to_calendar``.
        sleep:      Awaitable sleep used for every delay (injectable for tests).
    """

    def __init__(
        self,
        config: SyncConfig,
        page_store: PageStore,
        calendar: CalendarClient | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._page_store = page_store
        self._calendar = calendar
        self._sleep = sleep
        self._normalizer = config.normalizer()
        self._resolver = config.resolver()
        self._builder = EventTransformerBuilder(self._resolver, config.timezone)
        self._stores: dict[str, RecordStore] = {}

    # ------------------------------------------------------------------
    # Collaborator wiring
    # ------------------------------------------------------------------

    def store_for(self, source_key: str) -> RecordStore:
        """Return (and cache) the RecordStore for a source.

        Raises:
            ConfigurationError: Unknown source or missing database id.
        """
        if source_key not in self._stores:
            integration = self._config.integration(source_key)
            self._stores[source_key] = RecordStore(
                source_key,
                integration.database_id,
                integration.descriptor,
                integration.properties,
                self._page_store,
                page_delay_s=self._config.rate_limit(STORE_SERVICE).delay_s,
            )
        return self._stores[source_key]

    def adapter_for(self, source_key: str) -> IngestAdapter:
        integration = self._config.integration(source_key)
        return get_adapter(source_key)(self._normalizer, integration.properties)

    async def _retry(
        self, operation: Callable[[], Awaitable[T]], description: str, *, idempotent: bool = True
    ) -> T:
        return await with_retries(
            operation, self._config.retry,
            description=description, sleep=self._sleep, idempotent=idempotent,
        )

    async def _pause(self, service: str, index: int, total: int) -> None:
        """Fixed delay between records (not after the last one)."""
        delay = self._config.rate_limit(service).delay_s
        if delay and index < total - 1:
            await self._sleep(delay)

    # ------------------------------------------------------------------
    # Source → page store
    # ------------------------------------------------------------------

    async def sync_to_store(self, source_key: str, items: list[dict]) -> SyncResult:
        """Create a page for every item whose unique id is not yet stored.

        Args:
            source_key: Configured source key.
            items:      Raw items exactly as the source delivered them.

        Returns:
            SyncResult where created + skipped + errors == len(items).

        Raises:
            ConfigurationError: Unknown source or missing database id.
        """
        store = self.store_for(source_key)
        adapter = self.adapter_for(source_key)
        dedup = InMemoryDedupCache()
        result = SyncResult(source=source_key, total=len(items))

        logger.info("Syncing %d %s record(s) to the page store", len(items), source_key)

        for index, raw in enumerate(items):
            try:
                outcome, item = await self._ingest_one(store, adapter, dedup, raw)
                (result.created if outcome == "created" else result.skipped).append(item)
            except LifelogError as exc:
                logger.warning("%s item %d failed: %s", source_key, index, exc)
                result.errors.append(
                    SyncErrorEntry(item_id=_item_label(raw, index), error=str(exc), index=index)
                )
            except Exception as exc:
                logger.exception("%s item %d failed unexpectedly", source_key, index)
                result.errors.append(
                    SyncErrorEntry(item_id=_item_label(raw, index), error=str(exc), index=index)
                )
            await self._pause(STORE_SERVICE, index, len(items))

        logger.info(
            "%s: %d created, %d skipped, %d errors (of %d)",
            source_key, len(result.created), len(result.skipped), len(result.errors), result.total,
        )
        return result

    async def _ingest_one(
        self, store: RecordStore, adapter: IngestAdapter, dedup: InMemoryDedupCache, raw: dict
    ) -> tuple[str, SyncItem]:
        record = adapter.to_destination(raw)
        uid = str(record.unique_id)

        key = record_key(record.source, record.unique_id)
        if dedup.is_seen(key):
            logger.debug("Skipping duplicate %s in batch", key)
            return "skipped", SyncItem(
                item_id=uid, display_name=record.display_name, reason="duplicate in batch"
            )
        dedup.mark_seen(key)

        existing = await self._retry(
            lambda: store.find_by_unique_id(record.unique_id), f"{record.source} lookup {uid}"
        )
        if existing is not None:
            logger.debug("Skipping %s: already stored as %s", key, existing.get("id"))
            return "skipped", SyncItem(
                item_id=uid,
                display_name=record.display_name,
                page_id=existing.get("id"),
                reason="already exists",
            )

        attempts = 0

        async def create_once() -> dict:
            # A failed attempt may still have written the page; look before resending.
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                landed = await store.find_by_unique_id(record.unique_id)
                if landed is not None:
                    logger.info("%s was stored by an earlier attempt as %s", key, landed.get("id"))
                    return landed
            return await store.create(record.values)

        page = await self._retry(create_once, f"{record.source} create {uid}")
        return "created", SyncItem(
            item_id=uid, display_name=record.display_name, page_id=page.get("id")
        )

    async def fetch_and_sync(
        self, source_key: str, fetch: SourceFetcher, start_date: date, end_date: date
    ) -> SyncResult:
        """Fetch a date range from a source, then ``sync_to_store`` it.

        Raises:
            ConfigurationError: Unknown source or missing database id.
            DataError:          The fetch failed after retries.
        """
        self.store_for(source_key)
        items = await self._retry(
            lambda: fetch(start_date, end_date), f"{source_key} fetch"
        )
        logger.info("Fetched %d %s item(s) for %s..%s", len(items), source_key, start_date, end_date)
        return await self.sync_to_store(source_key, items)

    async def run_all(
        self, fetchers: dict[str, SourceFetcher], start_date: date, end_date: date
    ) -> dict[str, SyncResult]:
        """Run ``fetch_and_sync`` for every configured source that has a fetcher.

        Sources are visited in config order with the source's own rate-limit
        delay between them.  Sources without a database id are skipped.  A
        source whose fetch fails is logged and left out of the results.

        Raises:
            ConfigurationError: A fetcher is given for an unknown source.
        """
        unknown = sorted(set(fetchers) - set(self._config.integrations))
        if unknown:
            raise ConfigurationError(f"Unknown source(s): {', '.join(unknown)}")

        results: dict[str, SyncResult] = {}
        pending = [k for k in self._config.integrations if k in fetchers]
        for position, key in enumerate(pending):
            integration = self._config.integration(key)
            if not integration.is_configured:
                logger.info("Skipping %s: no database id configured", key)
                continue
            try:
                results[key] = await self.fetch_and_sync(key, fetchers[key], start_date, end_date)
            except LifelogError as exc:
                logger.error("Sync of %s failed: %s", key, exc)
            if position < len(pending) - 1:
                delay = self._config.rate_limit(integration.rate_limit).delay_s
                if delay:
                    await self._sleep(delay)
        return results

    # ------------------------------------------------------------------
    # Page store → calendar
    # ------------------------------------------------------------------

    async def sync_to_calendar(
        self, source_key: str, start_date: date, end_date: date
    ) -> SyncResult:
        """Create calendar events for every unsynced record in a date range.

        Hybrid records that still reference an earlier event have that event
        deleted before the replacement is created.  If marking a record synced
        fails, the event just created is deleted again.

        Raises:
            ConfigurationError: No calendar client, unknown source, missing
                                database id, or mismatched event family.
            DataError:          Inverted date range, or the query failed.
        """
        if self._calendar is None:
            raise ConfigurationError("No calendar client configured")

        integration = self._config.integration(source_key)
        family = family_for(source_key)
        if integration.calendar_mapping and integration.calendar_mapping != family.calendar_key:
            raise ConfigurationError(
                f"{source_key}: calendar_mapping '{integration.calendar_mapping}' does not "
                f"match event family '{family.calendar_key}'"
            )
        store = self.store_for(source_key)

        if not self._resolver.has_calendars(family.calendar_key):
            logger.warning("No calendars configured for %s; skipping %s", family.calendar_key, source_key)
            return SyncResult(source=source_key)

        transform = self._builder.build(family)
        pages = await self._retry(
            lambda: store.query_unsynced(start_date, end_date), f"{source_key} unsynced query"
        )
        result = SyncResult(source=source_key, total=len(pages))
        logger.info("Publishing %d unsynced %s record(s) to the calendar", len(pages), source_key)

        for index, page in enumerate(pages):
            page_id = str(page.get("id") or f"page-{index}")
            try:
                result.created.append(await self._publish_one(store, transform, page, page_id))
            except LifelogError as exc:
                logger.warning("%s page %s failed: %s", source_key, page_id, exc)
                result.errors.append(SyncErrorEntry(item_id=page_id, error=str(exc), index=index))
            except Exception as exc:
                logger.exception("%s page %s failed unexpectedly", source_key, page_id)
                result.errors.append(SyncErrorEntry(item_id=page_id, error=str(exc), index=index))
            await self._pause(CALENDAR_SERVICE, index, len(pages))

        logger.info(
            "%s: %d events created, %d errors (of %d)",
            source_key, len(result.created), len(result.errors), result.total,
        )
        return result

    async def _publish_one(
        self, store: RecordStore, transform: Transformer, page: dict, page_id: str
    ) -> SyncItem:
        event = transform(page, store)
        calendar = self._calendar

        previous = store.extract_event_id(page)
        if previous:
            removed = await self._retry(
                lambda: calendar.delete_event(event.calendar_id, previous),
                f"delete event {previous}",
            )
            if removed:
                logger.debug("Replacing event %s for page %s", previous, page_id)
            else:
                logger.warning(
                    "Previous event %s for page %s not found on %s; it may remain on another calendar",
                    previous, page_id, event.calendar_id,
                )

        event_id = await self._retry(
            lambda: calendar.create_event(event.calendar_id, event),
            f"create event for {page_id}",
            idempotent=False,
        )

        try:
            await self._retry(
                lambda: store.mark_synced(page_id, event_id=event_id, record=page),
                f"mark {page_id} synced",
            )
        except Exception:
            logger.warning("Marking %s failed; deleting event %s", page_id, event_id)
            try:
                await self._retry(
                    lambda: calendar.delete_event(event.calendar_id, event_id),
                    f"delete event {event_id}",
                )
            except LifelogError as cleanup_exc:
                logger.error("Could not delete orphaned event %s: %s", event_id, cleanup_exc)
            raise

        return SyncItem(
            item_id=page_id,
            display_name=event.summary,
            page_id=page_id,
            calendar_id=event.calendar_id,
            event_id=event_id,
            summary=event.summary,
            updated=bool(previous),
        )
