"""Read-through cache for derived progress views.

Domain statistics are recomputed from the full event log, so they are
cached per user.  Each entry records the sequence of the newest event it
was computed from, and a read only accepts an entry whose sequence matches
the log's current one.  On top of that:

  1. TTL: every entry expires on its own after DOMAIN_STATS_TTL_SECONDS.
  2. Explicit: a recorded completion deletes the user's entry at once.

A failed delete or a reader that stores a breakdown from an older log
leaves an entry behind that no longer matches, so it is never served.

The cache is an optimization, never a source of truth.  A cache failure
is logged and treated as a miss.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Protocol, runtime_checkable

from edusmart.core.metrics import CACHE_OPERATIONS
from edusmart.db.redis import redis_pool
from edusmart.models.stats import DomainStatistics

logger = logging.getLogger(__name__)

DOMAIN_STATS_TTL_SECONDS = 300


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for tests and single-process runs.  No TTL enforcement;
    the autouse fixture in conftest.py clears it between tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    # Keeps cache keys apart from the ingestion lock keys.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Domain statistics helpers
# ---------------------------------------------------------------------------


def domain_stats_key(user_id: str) -> str:
    return f"domain-stats:{user_id}"


def dump_domain_stats(breakdown: list[DomainStatistics], sequence: int) -> str:
    payload = []
    for item in breakdown:
        entry = asdict(item)
        entry["last_activity_at"] = (
            item.last_activity_at.isoformat() if item.last_activity_at else None
        )
        payload.append(entry)
    return json.dumps({"sequence": sequence, "domains": payload})


def load_domain_stats(raw: str) -> tuple[int, list[DomainStatistics]]:
    """Returns the sequence the entry was computed at, and the breakdown."""
    data = json.loads(raw)
    breakdown = []
    for entry in data["domains"]:
        last = entry.get("last_activity_at")
        entry["last_activity_at"] = datetime.fromisoformat(last) if last else None
        breakdown.append(DomainStatistics(**entry))
    return data["sequence"], breakdown


async def cached_domain_stats(
    cache: CacheService, user_id: str, sequence: int
) -> list[DomainStatistics] | None:
    """The cached breakdown, if it was computed from the log as of `sequence`."""
    try:
        raw = await cache.get(domain_stats_key(user_id))
    except Exception:
        logger.warning("Cache read failed for user=%s; treating as miss", user_id, exc_info=True)
        raw = None

    if raw is not None:
        cached_sequence, breakdown = load_domain_stats(raw)
        if cached_sequence == sequence:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return breakdown
        logger.debug(
            "Stale domain stats for user=%s (cached at %d, log at %d)",
            user_id,
            cached_sequence,
            sequence,
        )

    CACHE_OPERATIONS.labels(operation="miss").inc()
    return None


async def store_domain_stats(
    cache: CacheService,
    user_id: str,
    breakdown: list[DomainStatistics],
    sequence: int,
) -> None:
    try:
        await cache.set(
            domain_stats_key(user_id),
            dump_domain_stats(breakdown, sequence),
            ttl_seconds=DOMAIN_STATS_TTL_SECONDS,
        )
    except Exception:
        logger.warning("Cache write failed for user=%s", user_id, exc_info=True)


async def invalidate_domain_stats(cache: CacheService, user_id: str) -> None:
    try:
        await cache.delete(domain_stats_key(user_id))
        CACHE_OPERATIONS.labels(operation="invalidate").inc()
    except Exception:
        logger.warning("Cache invalidation failed for user=%s", user_id, exc_info=True)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
