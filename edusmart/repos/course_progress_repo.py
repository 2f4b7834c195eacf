from __future__ import annotations

from typing import Protocol

from edusmart.models.course import CourseProgress


class CourseProgressRepo(Protocol):
    async def get(self, user_id: str, course_id: str) -> CourseProgress | None: ...
    async def save(self, progress: CourseProgress) -> None: ...
    async def list_for_user(self, user_id: str) -> list[CourseProgress]: ...


class InMemoryCourseProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CourseProgress] = {}

    async def get(self, user_id: str, course_id: str) -> CourseProgress | None:
        return self._store.get((user_id, course_id))

    async def save(self, progress: CourseProgress) -> None:
        self._store[(progress.user_id, progress.course_id)] = progress

    async def list_for_user(self, user_id: str) -> list[CourseProgress]:
        return [p for (uid, _), p in self._store.items() if uid == user_id]

    def clear(self) -> None:
        self._store.clear()
