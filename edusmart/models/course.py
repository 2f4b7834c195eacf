from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    slug: str
    title: str
    domain: str
    difficulty: str = "beginner"  # beginner|intermediate|advanced
    description: str = ""


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: str
    course_id: str
    position: int
    title: str


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Projection of a user's module completions within one course.

    percent_complete is stored as the maximum ever computed, so it never
    decreases when the catalog changes under it.
    """

    user_id: str
    course_id: str
    completed_module_ids: frozenset[str] = field(default_factory=frozenset)
    total_module_count: int = 0
    percent_complete: int = 0
    current_module_id: str | None = None
    last_activity_at: datetime | None = None

    @property
    def completed_module_count(self) -> int:
        return len(self.completed_module_ids)

    @property
    def completed(self) -> bool:
        return self.percent_complete >= 100

    @staticmethod
    def empty(
        user_id: str,
        course_id: str,
        total_module_count: int = 0,
        current_module_id: str | None = None,
    ) -> CourseProgress:
        return CourseProgress(
            user_id=user_id,
            course_id=course_id,
            total_module_count=total_module_count,
            current_module_id=current_module_id,
        )
