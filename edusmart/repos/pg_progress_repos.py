"""PostgreSQL implementations of the stats, achievement and course-progress repos."""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from edusmart.db.engine import store_errors
from edusmart.db.tables import AchievementRow, CourseProgressRow, UserStatsRow
from edusmart.models.achievement import Achievement
from edusmart.models.course import CourseProgress
from edusmart.models.stats import UserStats
from edusmart.services.errors import ConcurrentUpdateError


class PgUserStatsRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> UserStats | None:
        stmt = select(UserStatsRow).where(UserStatsRow.user_id == user_id)
        with store_errors("load user stats"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_stats(row)

    async def save(self, stats: UserStats) -> UserStats:
        values = dict(
            xp=stats.xp,
            level=stats.level,
            domain_progress_percent=stats.domain_progress_percent,
            streak_days=stats.streak_days,
            completed_resources=stats.completed_resources,
            study_seconds=stats.study_seconds,
            version=stats.version + 1,
        )
        if stats.version == 0:
            # First write for this user: the row must not exist yet.
            stmt = (
                pg_insert(UserStatsRow)
                .values(user_id=stats.user_id, **values)
                .on_conflict_do_nothing(index_elements=[UserStatsRow.user_id])
            )
        else:
            stmt = (
                update(UserStatsRow)
                .where(
                    UserStatsRow.user_id == stats.user_id,
                    UserStatsRow.version == stats.version,
                )
                .values(**values)
            )
        with store_errors("save user stats"):
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise ConcurrentUpdateError(
                f"stats for user={stats.user_id} changed (expected v{stats.version})"
            )
        return replace(stats, version=stats.version + 1)


class PgAchievementRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: str) -> list[Achievement]:
        stmt = (
            select(AchievementRow)
            .where(AchievementRow.user_id == user_id)
            .order_by(AchievementRow.unlocked_at)
        )
        with store_errors("list achievements"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Achievement(
                user_id=row.user_id,
                type=row.type,
                title=row.title,
                description=row.description or "",
                xp_awarded=row.xp_awarded,
                unlocked_at=row.unlocked_at,
            )
            for row in rows
        ]

    async def add_if_absent(self, achievement: Achievement) -> bool:
        stmt = (
            pg_insert(AchievementRow)
            .values(
                user_id=achievement.user_id,
                type=achievement.type,
                title=achievement.title,
                description=achievement.description,
                xp_awarded=achievement.xp_awarded,
                unlocked_at=achievement.unlocked_at,
            )
            .on_conflict_do_nothing(
                index_elements=[AchievementRow.user_id, AchievementRow.type]
            )
        )
        with store_errors("unlock achievement"):
            result = await self._session.execute(stmt)
        return result.rowcount == 1


class PgCourseProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: str) -> CourseProgress | None:
        stmt = select(CourseProgressRow).where(
            CourseProgressRow.user_id == user_id,
            CourseProgressRow.course_id == course_id,
        )
        with store_errors("load course progress"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course_progress(row)

    async def save(self, progress: CourseProgress) -> None:
        values = dict(
            completed_module_ids=sorted(progress.completed_module_ids),
            total_module_count=progress.total_module_count,
            percent_complete=progress.percent_complete,
            current_module_id=progress.current_module_id,
            last_activity_at=progress.last_activity_at,
        )
        stmt = (
            pg_insert(CourseProgressRow)
            .values(user_id=progress.user_id, course_id=progress.course_id, **values)
            .on_conflict_do_update(
                index_elements=[CourseProgressRow.user_id, CourseProgressRow.course_id],
                set_=values,
            )
        )
        with store_errors("save course progress"):
            await self._session.execute(stmt)

    async def list_for_user(self, user_id: str) -> list[CourseProgress]:
        stmt = select(CourseProgressRow).where(CourseProgressRow.user_id == user_id)
        with store_errors("list course progress"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course_progress(row) for row in rows]


def _row_to_stats(row: UserStatsRow) -> UserStats:
    return UserStats(
        user_id=row.user_id,
        xp=row.xp,
        level=row.level,  # type: ignore[arg-type]
        domain_progress_percent=row.domain_progress_percent,
        streak_days=row.streak_days,
        completed_resources=row.completed_resources,
        study_seconds=row.study_seconds,
        version=row.version,
    )


def _row_to_course_progress(row: CourseProgressRow) -> CourseProgress:
    return CourseProgress(
        user_id=row.user_id,
        course_id=row.course_id,
        completed_module_ids=frozenset(row.completed_module_ids or ()),
        total_module_count=row.total_module_count,
        percent_complete=row.percent_complete,
        current_module_id=row.current_module_id,
        last_activity_at=row.last_activity_at,
    )
