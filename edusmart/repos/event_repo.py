from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from edusmart.models.completion import CompletionEvent


class CompletionEventRepo(Protocol):
    async def append(self, event: CompletionEvent) -> tuple[CompletionEvent, bool]:
        """Append to the user's log.

        Returns the stored event (with its sequence assigned) and whether an
        event with the same dedup key was already in the log.
        """
        ...

    async def list_for_user(self, user_id: str) -> list[CompletionEvent]:
        """All of the user's events, retries included, in append order."""
        ...

    async def latest_sequence(self, user_id: str) -> int:
        """Sequence of the user's newest event, 0 for an empty log."""
        ...


class InMemoryCompletionEventRepo:
    def __init__(self) -> None:
        self._events: dict[str, list[CompletionEvent]] = {}
        self._keys: set[tuple[str, str, str, str]] = set()
        self._next_sequence = 1

    async def append(self, event: CompletionEvent) -> tuple[CompletionEvent, bool]:
        stored = replace(event, sequence=self._next_sequence)
        self._next_sequence += 1

        duplicate = stored.dedup_key in self._keys
        self._keys.add(stored.dedup_key)
        self._events.setdefault(stored.user_id, []).append(stored)
        return stored, duplicate

    async def list_for_user(self, user_id: str) -> list[CompletionEvent]:
        return list(self._events.get(user_id, []))

    async def latest_sequence(self, user_id: str) -> int:
        events = self._events.get(user_id)
        return events[-1].sequence if events else 0

    def clear(self) -> None:
        self._events.clear()
        self._keys.clear()
        self._next_sequence = 1
