from __future__ import annotations

from typing import Protocol

from edusmart.models.achievement import Achievement


class AchievementRepo(Protocol):
    async def list_for_user(self, user_id: str) -> list[Achievement]: ...

    async def add_if_absent(self, achievement: Achievement) -> bool:
        """Insert unless (user_id, type) exists.  True when inserted."""
        ...


class InMemoryAchievementRepo:
    def __init__(self) -> None:
        self._by_key: dict[tuple[str, str], Achievement] = {}

    async def list_for_user(self, user_id: str) -> list[Achievement]:
        owned = [a for (uid, _), a in self._by_key.items() if uid == user_id]
        return sorted(owned, key=lambda a: a.unlocked_at)

    async def add_if_absent(self, achievement: Achievement) -> bool:
        if achievement.key in self._by_key:
            return False
        self._by_key[achievement.key] = achievement
        return True

    def clear(self) -> None:
        self._by_key.clear()
