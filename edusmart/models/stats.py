from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Level = Literal["Beginner", "Intermediate", "Advanced", "Expert"]

# Ordered lowest to highest; the index is the rank used for monotonic checks.
LEVELS: tuple[Level, ...] = ("Beginner", "Intermediate", "Advanced", "Expert")


def level_rank(level: str) -> int:
    return LEVELS.index(level)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class DomainStatistics:
    """Derived view over one user's deduplicated events in one domain.

    Never stored as source of truth.  total_completed always equals
    sum(counts_by_type.values()).
    """

    domain: str
    total_completed: int = 0
    counts_by_type: dict[str, int] = field(default_factory=dict)
    total_hours: float = 0.0
    streak_days: int = 0
    best_day_count: int = 0
    last_activity_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class UserStats:
    """Per-user leveling state.

    xp accumulates per ingested event and is never recomputed from the log.
    level is the highest level ever reached, so it never regresses even
    when domain_progress_percent is recomputed lower.
    """

    user_id: str
    xp: int = 0
    level: Level = "Beginner"
    domain_progress_percent: int = 0
    streak_days: int = 0
    completed_resources: int = 0
    study_seconds: float = 0.0
    version: int = 0

    @property
    def study_hours(self) -> float:
        return self.study_seconds / 3600

    @staticmethod
    def initial(user_id: str) -> UserStats:
        return UserStats(user_id=user_id)
