"""Stateful progress engine: ingestion plus the read side.

record_completion() is the only write path.  It validates the submission
before touching any store, then, holding the user's ingestion lock,
appends the event, folds it into the user's stats, unlocks achievements,
updates course progress and drops the cached domain statistics.

Everything the service reads back (domain stats, heatmap, timeline) is
re-derived from the event log, so a read immediately after a write
reflects it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from edusmart.core.config import SETTINGS
from edusmart.core.metrics import (
    ACHIEVEMENTS_UNLOCKED,
    COMPLETION_EVENTS,
    LEVEL_UPS,
    XP_AWARDED,
)
from edusmart.models.achievement import Achievement
from edusmart.models.completion import (
    CompletionEvent,
    CompletionInput,
    ModuleCompletionInput,
)
from edusmart.models.course import CourseModule, CourseProgress
from edusmart.models.stats import DomainStatistics, UserStats
from edusmart.repos.achievement_repo import AchievementRepo, InMemoryAchievementRepo
from edusmart.repos.course_catalog import CourseCatalog, course_catalog
from edusmart.repos.course_progress_repo import (
    CourseProgressRepo,
    InMemoryCourseProgressRepo,
)
from edusmart.repos.event_repo import CompletionEventRepo, InMemoryCompletionEventRepo
from edusmart.repos.user_stats_repo import InMemoryUserStatsRepo, UserStatsRepo
from edusmart.services import cache as stats_cache
from edusmart.services.aggregator import (
    aggregate,
    aggregate_by_domain,
    course_progress as apply_module_completion,
    dedupe,
    streak_days,
)
from edusmart.services.cache import CacheService, cache_service
from edusmart.services.errors import CompletionValidationError, CourseNotFoundError
from edusmart.services.ingestion import normalize_module, normalize_resource
from edusmart.services.leveling import evaluate
from edusmart.services.locks import UserLocks, user_locks
from edusmart.services.projections import (
    DEFAULT_HEATMAP_DAYS,
    DEFAULT_TIMELINE_LIMIT,
    HeatmapDay,
    activity_heatmap,
    timeline,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def not_started(
    user_id: str, course_id: str, modules: list[CourseModule]
) -> CourseProgress:
    """Progress of a course the user has not touched: 0%, on the first module."""
    first = min(modules, key=lambda m: m.position, default=None)
    return CourseProgress.empty(
        user_id,
        course_id,
        len(modules),
        current_module_id=first.id if first is not None else None,
    )


@dataclass(frozen=True, slots=True)
class IngestionResult:
    event: CompletionEvent
    duplicate: bool
    user_stats: UserStats
    domain_stats: DomainStatistics
    course_progress: CourseProgress | None = None
    new_achievements: tuple[Achievement, ...] = ()


class ProgressService:
    def __init__(
        self,
        *,
        events: CompletionEventRepo,
        stats: UserStatsRepo,
        achievements: AchievementRepo,
        course_progress: CourseProgressRepo,
        catalog: CourseCatalog,
        cache: CacheService,
        locks: UserLocks,
        clock: Callable[[], datetime] = utcnow,
        clock_skew_seconds: int = 300,
        commit: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._events = events
        self._stats = stats
        self._achievements = achievements
        self._course_progress = course_progress
        self._catalog = catalog
        self._cache = cache
        self._locks = locks
        self._clock = clock
        self._clock_skew_seconds = clock_skew_seconds
        # Runs under the user lock so the next writer sees this write.
        self._commit = commit

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def record_completion(
        self, user_id: str, submission: CompletionInput
    ) -> IngestionResult:
        now = self._clock()
        modules: list[CourseModule] = []
        try:
            if isinstance(submission, ModuleCompletionInput):
                course = await self._catalog.get_course(submission.course_id)
                if course is None:
                    raise CourseNotFoundError(
                        f"course {submission.course_id!r} does not exist"
                    )
                modules = await self._catalog.list_modules(course.id)
                event = normalize_module(
                    submission,
                    user_id=user_id,
                    course=course,
                    modules=modules,
                    now=now,
                    clock_skew_seconds=self._clock_skew_seconds,
                )
            else:
                event = normalize_resource(
                    submission,
                    user_id=user_id,
                    now=now,
                    clock_skew_seconds=self._clock_skew_seconds,
                )
        except (CompletionValidationError, LookupError) as e:
            COMPLETION_EVENTS.labels(outcome="rejected").inc()
            logger.warning(
                "Rejected completion user=%s kind=%s: %s",
                user_id,
                submission.kind,
                e,
            )
            raise

        async with self._locks.hold(user_id):
            stored, duplicate = await self._events.append(event)
            log = await self._events.list_for_user(user_id)

            if duplicate:
                COMPLETION_EVENTS.labels(outcome="duplicate").inc()
                logger.info(
                    "Duplicate completion ignored user=%s resource=%s type=%s",
                    user_id,
                    stored.resource_id,
                    stored.resource_type,
                )
                return IngestionResult(
                    event=stored,
                    duplicate=True,
                    user_stats=await self.get_user_stats(user_id),
                    domain_stats=aggregate(log, stored.domain),
                    course_progress=await self._current_course_progress(
                        user_id, stored.course_id, modules
                    ),
                )

            held = await self._achievements.list_for_user(user_id)
            evaluation = evaluate(
                await self._stats.get(user_id),
                stored,
                unlocked_types={a.type for a in held},
                streak_days=streak_days(dedupe(log)),
                now=now,
            )

            unlocked: list[Achievement] = []
            for achievement in evaluation.new_achievements:
                if await self._achievements.add_if_absent(achievement):
                    unlocked.append(achievement)
                else:
                    logger.warning(
                        "Achievement already held user=%s type=%s; bonus not credited",
                        user_id,
                        achievement.type,
                    )

            withheld = sum(
                a.xp_awarded for a in evaluation.new_achievements if a not in unlocked
            )
            updated = evaluation.updated_stats
            if withheld:
                updated = replace(updated, xp=updated.xp - withheld)
            saved = await self._stats.save(updated)

            progress = None
            if stored.course_id is not None:
                previous = await self._course_progress.get(user_id, stored.course_id)
                if previous is None:
                    previous = not_started(user_id, stored.course_id, modules)
                progress = apply_module_completion(previous, modules, stored)
                await self._course_progress.save(progress)

            if self._commit is not None:
                await self._commit()
            await stats_cache.invalidate_domain_stats(self._cache, user_id)

        COMPLETION_EVENTS.labels(outcome="recorded").inc()
        XP_AWARDED.inc(evaluation.event_xp + sum(a.xp_awarded for a in unlocked))
        for achievement in unlocked:
            ACHIEVEMENTS_UNLOCKED.labels(type=achievement.type).inc()
            logger.info(
                "Achievement unlocked user=%s achievement=%s xp=%d",
                user_id,
                achievement.type,
                achievement.xp_awarded,
                extra={"user_id": user_id, "achievement": achievement.type},
            )
        if evaluation.leveled_up:
            LEVEL_UPS.labels(level=saved.level).inc()
            logger.info("Level up user=%s level=%s", user_id, saved.level)

        logger.info(
            "Recorded completion user=%s resource=%s type=%s domain=%s xp=%d",
            user_id,
            stored.resource_id,
            stored.resource_type,
            stored.domain,
            saved.xp,
            extra={"user_id": user_id, "event_id": str(stored.id)},
        )
        return IngestionResult(
            event=stored,
            duplicate=False,
            user_stats=saved,
            domain_stats=aggregate(log, stored.domain),
            course_progress=progress,
            new_achievements=tuple(unlocked),
        )

    async def _current_course_progress(
        self, user_id: str, course_id: str | None, modules: list[CourseModule]
    ) -> CourseProgress | None:
        if course_id is None:
            return None
        progress = await self._course_progress.get(user_id, course_id)
        return progress or not_started(user_id, course_id, modules)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_course_progress(self, user_id: str, course_id: str) -> CourseProgress:
        course = await self._catalog.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"course {course_id!r} does not exist")
        modules = await self._catalog.list_modules(course.id)
        progress = await self._course_progress.get(user_id, course.id)
        return progress or not_started(user_id, course.id, modules)

    async def list_course_progress(self, user_id: str) -> list[CourseProgress]:
        return await self._course_progress.list_for_user(user_id)

    async def get_domain_breakdown(self, user_id: str) -> dict[str, DomainStatistics]:
        latest = await self._events.latest_sequence(user_id)
        cached = await stats_cache.cached_domain_stats(self._cache, user_id, latest)
        if cached is not None:
            return {item.domain: item for item in cached}

        log = await self._events.list_for_user(user_id)
        breakdown = aggregate_by_domain(log)
        # Tagged with the log actually read, which may be newer than `latest`.
        await stats_cache.store_domain_stats(
            self._cache,
            user_id,
            list(breakdown.values()),
            max((e.sequence for e in log), default=0),
        )
        return breakdown

    async def get_user_stats(self, user_id: str) -> UserStats:
        stats = await self._stats.get(user_id)
        return stats or UserStats.initial(user_id)

    async def list_achievements(self, user_id: str) -> list[Achievement]:
        return await self._achievements.list_for_user(user_id)

    async def get_activity_heatmap(
        self, user_id: str, days: int = DEFAULT_HEATMAP_DAYS
    ) -> list[HeatmapDay]:
        events = await self._events.list_for_user(user_id)
        return activity_heatmap(events, today=self._clock().date(), window_days=days)

    def empty_heatmap(self, days: int = DEFAULT_HEATMAP_DAYS) -> list[HeatmapDay]:
        return activity_heatmap([], today=self._clock().date(), window_days=days)

    async def get_timeline(
        self, user_id: str, limit: int = DEFAULT_TIMELINE_LIMIT
    ) -> list[CompletionEvent]:
        return timeline(await self._events.list_for_user(user_id), limit=limit)


# ---------------------------------------------------------------------------
# Module-level singletons (in-memory mode)
# ---------------------------------------------------------------------------

event_repo = InMemoryCompletionEventRepo()
user_stats_repo = InMemoryUserStatsRepo()
achievement_repo = InMemoryAchievementRepo()
course_progress_repo = InMemoryCourseProgressRepo()


def build_progress_service(
    *,
    events: CompletionEventRepo = event_repo,
    stats: UserStatsRepo = user_stats_repo,
    achievements: AchievementRepo = achievement_repo,
    course_progress: CourseProgressRepo = course_progress_repo,
    clock: Callable[[], datetime] = utcnow,
    commit: Callable[[], Awaitable[None]] | None = None,
) -> ProgressService:
    return ProgressService(
        events=events,
        stats=stats,
        achievements=achievements,
        course_progress=course_progress,
        catalog=course_catalog,
        cache=cache_service,
        locks=user_locks,
        clock=clock,
        clock_skew_seconds=SETTINGS.clock_skew_seconds,
        commit=commit,
    )


progress_service = build_progress_service()
