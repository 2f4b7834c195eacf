"""Completion ingestion and the learner's progress views.

  POST /v1/progress/events          record a resource or module completion
  GET  /v1/progress/courses         progress in every course the learner started
  GET  /v1/progress/courses/{id}    course progress (0% when never started)
  GET  /v1/progress/domains         per-domain statistics (read-through cached)
  GET  /v1/progress/stats           XP, level, streak
  GET  /v1/progress/heatmap         dense per-day activity counts
  GET  /v1/progress/timeline        most recent completions

Every route is scoped to the token's subject; there is no way to read or
write another learner's progress.
"""

from __future__ import annotations

import datetime
import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Discriminator, Tag

from edusmart.api.dependencies import get_progress_service, require_user
from edusmart.api.errors import http_error
from edusmart.models.achievement import Achievement
from edusmart.models.completion import (
    DEFAULT_PLATFORM,
    CompletionEvent,
    ModuleCompletionInput,
    ResourceCompletionInput,
)
from edusmart.models.course import CourseProgress
from edusmart.models.principal import Principal
from edusmart.models.stats import DomainStatistics, UserStats
from edusmart.services.errors import ProgressError, StoreUnavailableError
from edusmart.services.progress_service import ProgressService
from edusmart.services.projections import (
    DEFAULT_HEATMAP_DAYS,
    DEFAULT_TIMELINE_LIMIT,
    MAX_HEATMAP_DAYS,
    MAX_TIMELINE_LIMIT,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ResourceCompletionIn(BaseModel):
    kind: Literal["resource"] = "resource"
    resource_id: str
    resource_type: str  # video|article|tutorial|documentation|github
    domain: str
    platform: str = DEFAULT_PLATFORM
    title: str = ""
    completed_at: datetime.datetime | None = None
    duration_seconds: float | None = None

    def to_input(self) -> ResourceCompletionInput:
        return ResourceCompletionInput(
            resource_id=self.resource_id,
            resource_type=self.resource_type,
            domain=self.domain,
            platform=self.platform,
            title=self.title,
            completed_at=self.completed_at,
            duration_seconds=self.duration_seconds,
        )


class ModuleCompletionIn(BaseModel):
    kind: Literal["module"]
    course_id: str
    module_id: str
    domain: str | None = None
    completed_at: datetime.datetime | None = None
    duration_seconds: float | None = None

    def to_input(self) -> ModuleCompletionInput:
        return ModuleCompletionInput(
            course_id=self.course_id,
            module_id=self.module_id,
            domain=self.domain,
            completed_at=self.completed_at,
            duration_seconds=self.duration_seconds,
        )


def _completion_kind(value: object) -> str:
    # A body without "kind" is a resource completion.
    if isinstance(value, dict):
        return value.get("kind", "resource")
    return getattr(value, "kind", "resource")


CompletionIn = Annotated[
    Annotated[ResourceCompletionIn, Tag("resource")]
    | Annotated[ModuleCompletionIn, Tag("module")],
    Discriminator(_completion_kind),
]


class CompletionEventOut(BaseModel):
    id: str
    kind: str
    resource_id: str
    resource_type: str
    domain: str
    platform: str
    title: str
    course_id: str | None
    completed_at: datetime.datetime
    duration_seconds: float | None

    @staticmethod
    def of(event: CompletionEvent) -> CompletionEventOut:
        return CompletionEventOut(
            id=str(event.id),
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


class DomainStatsOut(BaseModel):
    domain: str
    total_completed: int
    counts_by_type: dict[str, int]
    total_hours: float
    streak_days: int
    best_day_count: int
    last_activity_at: datetime.datetime | None

    @staticmethod
    def of(stats: DomainStatistics) -> DomainStatsOut:
        return DomainStatsOut(
            domain=stats.domain,
            total_completed=stats.total_completed,
            counts_by_type=dict(stats.counts_by_type),
            total_hours=stats.total_hours,
            streak_days=stats.streak_days,
            best_day_count=stats.best_day_count,
            last_activity_at=stats.last_activity_at,
        )


class UserStatsOut(BaseModel):
    xp: int
    level: str
    domain_progress_percent: int
    streak_days: int
    completed_resources: int
    study_hours: float

    @staticmethod
    def of(stats: UserStats) -> UserStatsOut:
        return UserStatsOut(
            xp=stats.xp,
            level=stats.level,
            domain_progress_percent=stats.domain_progress_percent,
            streak_days=stats.streak_days,
            completed_resources=stats.completed_resources,
            study_hours=round(stats.study_hours, 2),
        )


class CourseProgressOut(BaseModel):
    course_id: str
    completed_module_ids: list[str]
    completed_module_count: int
    total_module_count: int
    percent_complete: int
    completed: bool
    current_module_id: str | None
    last_activity_at: datetime.datetime | None

    @staticmethod
    def of(progress: CourseProgress) -> CourseProgressOut:
        return CourseProgressOut(
            course_id=progress.course_id,
            completed_module_ids=sorted(progress.completed_module_ids),
            completed_module_count=progress.completed_module_count,
            total_module_count=progress.total_module_count,
            percent_complete=progress.percent_complete,
            completed=progress.completed,
            current_module_id=progress.current_module_id,
            last_activity_at=progress.last_activity_at,
        )


class AchievementOut(BaseModel):
    type: str
    title: str
    description: str
    xp_awarded: int
    unlocked_at: datetime.datetime

    @staticmethod
    def of(achievement: Achievement) -> AchievementOut:
        return AchievementOut(
            type=achievement.type,
            title=achievement.title,
            description=achievement.description,
            xp_awarded=achievement.xp_awarded,
            unlocked_at=achievement.unlocked_at,
        )


class IngestionOut(BaseModel):
    event: CompletionEventOut
    duplicate: bool
    user_stats: UserStatsOut
    domain_stats: DomainStatsOut
    course_progress: CourseProgressOut | None = None
    new_achievements: list[AchievementOut] = []


class HeatmapDayOut(BaseModel):
    date: datetime.date
    count: int


# ---------------------------------------------------------------------------
# POST /v1/progress/events
# ---------------------------------------------------------------------------


@router.post(
    "/events",
    response_model=IngestionOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_completion(
    payload: CompletionIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> IngestionOut:
    """201 for a newly recorded completion, 200 for a repeat of one
    already in the log (which awards nothing)."""
    try:
        result = await service.record_completion(principal.user_id, payload.to_input())
    except ProgressError as e:
        raise http_error(e) from None

    if result.duplicate:
        response.status_code = status.HTTP_200_OK

    return IngestionOut(
        event=CompletionEventOut.of(result.event),
        duplicate=result.duplicate,
        user_stats=UserStatsOut.of(result.user_stats),
        domain_stats=DomainStatsOut.of(result.domain_stats),
        course_progress=(
            CourseProgressOut.of(result.course_progress)
            if result.course_progress is not None
            else None
        ),
        new_achievements=[AchievementOut.of(a) for a in result.new_achievements],
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/courses", response_model=list[CourseProgressOut])
async def list_course_progress(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> list[CourseProgressOut]:
    try:
        progress = await service.list_course_progress(principal.user_id)
    except StoreUnavailableError:
        logger.exception("Course progress unavailable for user=%s", principal.user_id)
        return []
    return [CourseProgressOut.of(p) for p in progress]


@router.get("/courses/{course_id}", response_model=CourseProgressOut)
async def get_course_progress(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> CourseProgressOut:
    try:
        progress = await service.get_course_progress(principal.user_id, course_id)
    except StoreUnavailableError:
        logger.exception(
            "Course progress unavailable for user=%s course=%s",
            principal.user_id,
            course_id,
        )
        progress = CourseProgress.empty(principal.user_id, course_id)
    except ProgressError as e:
        raise http_error(e) from None
    return CourseProgressOut.of(progress)


@router.get("/domains", response_model=dict[str, DomainStatsOut])
async def get_domain_breakdown(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> dict[str, DomainStatsOut]:
    try:
        breakdown = await service.get_domain_breakdown(principal.user_id)
    except StoreUnavailableError:
        logger.exception("Domain stats unavailable for user=%s", principal.user_id)
        return {}
    return {domain: DomainStatsOut.of(s) for domain, s in breakdown.items()}


@router.get("/stats", response_model=UserStatsOut)
async def get_user_stats(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> UserStatsOut:
    try:
        stats = await service.get_user_stats(principal.user_id)
    except StoreUnavailableError:
        logger.exception("User stats unavailable for user=%s", principal.user_id)
        stats = UserStats.initial(principal.user_id)
    return UserStatsOut.of(stats)


@router.get("/heatmap", response_model=list[HeatmapDayOut])
async def get_activity_heatmap(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
    days: Annotated[int, Query(ge=1, le=MAX_HEATMAP_DAYS)] = DEFAULT_HEATMAP_DAYS,
) -> list[HeatmapDayOut]:
    try:
        heatmap = await service.get_activity_heatmap(principal.user_id, days=days)
    except StoreUnavailableError:
        logger.exception("Heatmap unavailable for user=%s", principal.user_id)
        heatmap = service.empty_heatmap(days=days)
    return [HeatmapDayOut(date=d.day, count=d.count) for d in heatmap]


@router.get("/timeline", response_model=list[CompletionEventOut])
async def get_timeline(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
    limit: Annotated[int, Query(ge=1, le=MAX_TIMELINE_LIMIT)] = DEFAULT_TIMELINE_LIMIT,
) -> list[CompletionEventOut]:
    try:
        events = await service.get_timeline(principal.user_id, limit=limit)
    except StoreUnavailableError:
        logger.exception("Timeline unavailable for user=%s", principal.user_id)
        return []
    return [CompletionEventOut.of(e) for e in events]
