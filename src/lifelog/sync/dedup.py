"""In-run deduplication for record ingestion.

The page store lookup by unique id is the authoritative dedup check.  This
cache only catches the same unique id appearing twice within one batch,
before the first copy's page is visible to a query.

Dedup key:
    (source, unique_id) — numeric ids are canonicalized so 42, 42.0 and "42"
    collide for number-typed sources.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("lifelog.sync.dedup")


def record_key(source: str, unique_id: str | int | float) -> str:
    """Generate a dedup key for a source record.

    Args:
        source:    Source key (e.g. 'strava').
        unique_id: Source-provided unique id.

    Returns:
        Colon-separated dedup key string.
    """
    if isinstance(unique_id, float) and unique_id.is_integer():
        unique_id = int(unique_id)
    return f"{source}:{unique_id}"


class InMemoryDedupCache:
    """In-process dedup cache for a single sync run.

    Usage::

        cache = InMemoryDedupCache()
        if cache.is_seen(key):
            logger.debug("Skipping duplicate: %s", key)
        else:
            cache.mark_seen(key)
            # process the record
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def is_seen(self, key: str) -> bool:
        return key in self._seen

    def mark_seen(self, key: str) -> None:
        self._seen.add(key)

    def clear(self) -> None:
        """Reset the cache."""
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)
