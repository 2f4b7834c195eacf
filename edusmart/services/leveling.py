"""XP, level transitions, and achievement unlocks.

evaluate() is a pure function: it takes the user's current stats (or None),
one newly counted completion event, and the achievement types the user
already holds, and returns the updated stats plus the achievements to
award.  Idempotence comes from `unlocked_types`: a type already present
is never emitted again.  The progress service serializes calls per user
and stores achievements with insert-if-absent, so the check-then-award
sequence cannot race.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection
from dataclasses import dataclass, replace
from datetime import datetime

from edusmart.models.achievement import Achievement
from edusmart.models.completion import CompletionEvent
from edusmart.models.stats import Level, UserStats, level_rank
from edusmart.services.aggregator import round_half_up

logger = logging.getLogger(__name__)

BASE_XP = 50
DEFAULT_MULTIPLIER = 1.0
TYPE_MULTIPLIERS: dict[str, float] = {
    "video": 1.5,
    "article": 1.2,
    "tutorial": 2.0,
    "documentation": 1.3,
    "github": 1.8,
    "module": 2.0,
}

# Each full 5 minutes of recorded duration adds 10% to an event's XP.
DURATION_STEP_SECONDS = 300
DURATION_STEP_BONUS = 0.1

# Resource-based progress: each distinct completed resource is worth 5%.
PERCENT_PER_RESOURCE = 5

# (minimum domain_progress_percent, level), checked highest first.
LEVEL_THRESHOLDS: tuple[tuple[int, Level], ...] = (
    (80, "Expert"),
    (60, "Advanced"),
    (30, "Intermediate"),
    (0, "Beginner"),
)

DEFAULT_LEVEL_BONUS = 250
LEVEL_BONUS: dict[str, int] = {
    "Intermediate": 500,
    "Advanced": 750,
    "Expert": 1000,
}


@dataclass(frozen=True, slots=True)
class Milestone:
    type: str
    title: str
    description: str
    xp: int
    min_resources: int | None = None
    min_study_hours: float | None = None

    def reached(self, stats: UserStats) -> bool:
        if self.min_resources is not None:
            return stats.completed_resources >= self.min_resources
        if self.min_study_hours is not None:
            return stats.study_hours >= self.min_study_hours
        return False


MILESTONES: tuple[Milestone, ...] = (
    Milestone(
        type="first-resource",
        title="First Steps",
        description="Complete your first learning resource",
        xp=100,
        min_resources=1,
    ),
    Milestone(
        type="resource-explorer",
        title="Resource Explorer",
        description="Complete 5 learning resources",
        xp=250,
        min_resources=5,
    ),
    Milestone(
        type="dedicated-learner",
        title="Dedicated Learner",
        description="Complete 10 learning resources",
        xp=500,
        min_resources=10,
    ),
    Milestone(
        type="study-enthusiast",
        title="Study Enthusiast",
        description="Study for 10 hours",
        xp=300,
        min_study_hours=10,
    ),
)


@dataclass(frozen=True, slots=True)
class Evaluation:
    updated_stats: UserStats
    new_achievements: tuple[Achievement, ...]
    event_xp: int = 0  # XP from the event itself, before achievement bonuses
    leveled_up: bool = False


def xp_for_event(event: CompletionEvent) -> int:
    multiplier = TYPE_MULTIPLIERS.get(event.resource_type, DEFAULT_MULTIPLIER)
    steps = math.floor((event.duration_seconds or 0) / DURATION_STEP_SECONDS)
    return round_half_up(BASE_XP * multiplier * (1 + steps * DURATION_STEP_BONUS))


def domain_progress_percent(completed_resources: int) -> int:
    return min(100, completed_resources * PERCENT_PER_RESOURCE)


def level_for_progress(percent: int) -> Level:
    for minimum, level in LEVEL_THRESHOLDS:
        if percent >= minimum:
            return level
    return "Beginner"


def higher_level(a: Level, b: Level) -> Level:
    return a if level_rank(a) >= level_rank(b) else b


def level_achievement_type(level: str) -> str:
    return f"reached-{level.lower()}"


def _level_achievement(user_id: str, level: Level, now: datetime) -> Achievement:
    return Achievement(
        user_id=user_id,
        type=level_achievement_type(level),
        title=f"{level} Level",
        description=f"Reached the {level} level",
        xp_awarded=LEVEL_BONUS.get(level, DEFAULT_LEVEL_BONUS),
        unlocked_at=now,
    )


def _milestone_achievement(user_id: str, milestone: Milestone, now: datetime) -> Achievement:
    return Achievement(
        user_id=user_id,
        type=milestone.type,
        title=milestone.title,
        description=milestone.description,
        xp_awarded=milestone.xp,
        unlocked_at=now,
    )


def evaluate(
    stats: UserStats | None,
    event: CompletionEvent,
    *,
    unlocked_types: Collection[str],
    streak_days: int,
    now: datetime,
) -> Evaluation:
    """Fold one newly counted event into the user's stats.

    Must only be called for the first occurrence of an event's dedup key;
    duplicates never reach the leveling engine.
    """
    if stats is None:
        logger.debug("No stats for user=%s, starting from defaults", event.user_id)
        stats = UserStats.initial(event.user_id)

    event_xp = xp_for_event(event)
    completed = stats.completed_resources + 1
    percent = domain_progress_percent(completed)
    computed_level = level_for_progress(percent)
    level = higher_level(stats.level, computed_level)

    updated = replace(
        stats,
        completed_resources=completed,
        study_seconds=stats.study_seconds + (event.duration_seconds or 0),
        domain_progress_percent=percent,
        streak_days=streak_days,
        level=level,
    )

    held = set(unlocked_types)
    awarded: list[Achievement] = []
    for milestone in MILESTONES:
        if milestone.type not in held and milestone.reached(updated):
            awarded.append(_milestone_achievement(stats.user_id, milestone, now))
            held.add(milestone.type)

    leveled_up = level_rank(level) > level_rank(stats.level)
    if leveled_up and level_achievement_type(level) not in held:
        awarded.append(_level_achievement(stats.user_id, level, now))

    bonus = sum(a.xp_awarded for a in awarded)
    updated = replace(updated, xp=stats.xp + event_xp + bonus)

    return Evaluation(
        updated_stats=updated,
        new_achievements=tuple(awarded),
        leveled_up=leveled_up,
        event_xp=event_xp,
    )
