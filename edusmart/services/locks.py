"""Per-user mutual exclusion for completion ingestion.

Two concurrent submissions for the same user would otherwise both read
the same stats and achievements and double-award.  Submissions for
different users never wait on each other.

With REDIS_URL set the lock is a Redis lock, so it holds across API
instances; otherwise it is an asyncio.Lock per user in this process.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from redis.exceptions import LockError, RedisError

from edusmart.db.redis import redis_pool
from edusmart.services.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 10
LOCK_WAIT_SECONDS = 5


class UserLocks(Protocol):
    def hold(self, user_id: str): ...


class InMemoryUserLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            yield

    def clear(self) -> None:
        self._locks.clear()


class RedisUserLocks:
    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"lock:user:{user_id}",
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_WAIT_SECONDS,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise StoreUnavailableError("ingestion lock unavailable") from e
        if not acquired:
            logger.warning("Timed out waiting for ingestion lock user=%s", user_id)
            raise StoreUnavailableError("ingestion lock busy")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired under us; the next holder already owns the key.
                logger.warning("Ingestion lock for user=%s expired before release", user_id)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    user_locks: UserLocks = RedisUserLocks(redis_pool)
else:
    user_locks = InMemoryUserLocks()
