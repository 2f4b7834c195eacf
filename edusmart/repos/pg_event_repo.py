"""PostgreSQL implementation of CompletionEventRepo."""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import exists, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from edusmart.db.engine import store_errors
from edusmart.db.tables import CompletionEventRow
from edusmart.models.completion import CompletionEvent


class PgCompletionEventRepo:
    """Satisfies the CompletionEventRepo Protocol using PostgreSQL via SQLAlchemy.

    The duplicate check and the insert run in the caller's transaction,
    under the per-user ingestion lock, so no other writer for the same
    user can slip in between them.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, event: CompletionEvent) -> tuple[CompletionEvent, bool]:
        seen = select(
            exists().where(
                CompletionEventRow.user_id == event.user_id,
                CompletionEventRow.resource_id == event.resource_id,
                CompletionEventRow.resource_type == event.resource_type,
                CompletionEventRow.course_id.is_not_distinct_from(event.course_id),
            )
        )
        stmt = (
            insert(CompletionEventRow)
            .values(
                id=event.id,
                user_id=event.user_id,
                kind=event.kind,
                resource_id=event.resource_id,
                resource_type=event.resource_type,
                domain=event.domain,
                platform=event.platform,
                title=event.title,
                course_id=event.course_id,
                completed_at=event.completed_at,
                duration_seconds=event.duration_seconds,
            )
            .returning(CompletionEventRow.sequence)
        )
        with store_errors("append completion event"):
            duplicate = bool((await self._session.execute(seen)).scalar())
            sequence = (await self._session.execute(stmt)).scalar_one()

        return replace(event, sequence=sequence), duplicate

    async def list_for_user(self, user_id: str) -> list[CompletionEvent]:
        stmt = (
            select(CompletionEventRow)
            .where(CompletionEventRow.user_id == user_id)
            .order_by(CompletionEventRow.sequence)
        )
        with store_errors("list completion events"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_event(row) for row in rows]

    async def latest_sequence(self, user_id: str) -> int:
        stmt = select(func.max(CompletionEventRow.sequence)).where(
            CompletionEventRow.user_id == user_id
        )
        with store_errors("read latest event sequence"):
            latest = (await self._session.execute(stmt)).scalar()
        return latest or 0


def _row_to_event(row: CompletionEventRow) -> CompletionEvent:
    return CompletionEvent(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,  # type: ignore[arg-type]
        resource_id=row.resource_id,
        resource_type=row.resource_type,  # type: ignore[arg-type]
        domain=row.domain,
        platform=row.platform,
        completed_at=row.completed_at,
        title=row.title or "",
        course_id=row.course_id,
        duration_seconds=row.duration_seconds,
        sequence=row.sequence,
    )
