from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from edusmart.models.stats import UserStats
from edusmart.services.errors import ConcurrentUpdateError


class UserStatsRepo(Protocol):
    async def get(self, user_id: str) -> UserStats | None: ...

    async def save(self, stats: UserStats) -> UserStats:
        """Optimistic write: stats.version must match the stored version.

        Returns the stored stats with the version bumped.  Raises
        ConcurrentUpdateError when another writer got there first.
        """
        ...


class InMemoryUserStatsRepo:
    def __init__(self) -> None:
        self._by_user: dict[str, UserStats] = {}

    async def get(self, user_id: str) -> UserStats | None:
        return self._by_user.get(user_id)

    async def save(self, stats: UserStats) -> UserStats:
        current = self._by_user.get(stats.user_id)
        current_version = current.version if current is not None else 0
        if current_version != stats.version:
            raise ConcurrentUpdateError(
                f"stats for user={stats.user_id} changed "
                f"(expected v{stats.version}, found v{current_version})"
            )

        stored = replace(stats, version=stats.version + 1)
        self._by_user[stats.user_id] = stored
        return stored

    def clear(self) -> None:
        self._by_user.clear()
