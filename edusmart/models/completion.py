from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

ResourceType = Literal[
    "video", "article", "tutorial", "documentation", "github", "module"
]
RESOURCE_TYPES: tuple[str, ...] = (
    "video",
    "article",
    "tutorial",
    "documentation",
    "github",
    "module",
)

CompletionKind = Literal["resource", "module"]

DEFAULT_PLATFORM = "EduSmart"


@dataclass(frozen=True, slots=True)
class ResourceCompletionInput:
    """A learner finished an external or catalog resource (video, article, ...)."""

    resource_id: str
    resource_type: str  # validated against RESOURCE_TYPES at ingestion
    domain: str
    platform: str = DEFAULT_PLATFORM
    title: str = ""
    completed_at: datetime | None = None
    duration_seconds: float | None = None
    kind: Literal["resource"] = "resource"


@dataclass(frozen=True, slots=True)
class ModuleCompletionInput:
    """A learner finished one module of a catalog course."""

    course_id: str
    module_id: str
    domain: str | None = None  # defaults to the course's domain
    completed_at: datetime | None = None
    duration_seconds: float | None = None
    kind: Literal["module"] = "module"


CompletionInput = ResourceCompletionInput | ModuleCompletionInput


@dataclass(frozen=True, slots=True)
class CompletionEvent:
    """Append-only fact: a user completed a resource or a course module.

    Retries of the same submission are appended too; counting happens on
    the first occurrence of each dedup_key (see services/aggregator.py).
    """

    id: UUID
    user_id: str
    kind: CompletionKind
    resource_id: str
    resource_type: ResourceType
    domain: str
    platform: str
    completed_at: datetime  # tz-aware, UTC
    title: str = ""
    course_id: str | None = None  # set for kind == "module"
    duration_seconds: float | None = None
    sequence: int = 0  # insertion order, assigned by the event store

    @property
    def dedup_key(self) -> tuple[str, str, str, str]:
        # Module ids are only unique within their course.
        return (self.user_id, self.resource_id, self.resource_type, self.course_id or "")

    @property
    def is_module(self) -> bool:
        return self.kind == "module"

    @staticmethod
    def new(
        *,
        user_id: str,
        kind: CompletionKind,
        resource_id: str,
        resource_type: ResourceType,
        domain: str,
        platform: str,
        completed_at: datetime,
        title: str = "",
        course_id: str | None = None,
        duration_seconds: float | None = None,
    ) -> CompletionEvent:
        return CompletionEvent(
            id=uuid4(),
            user_id=user_id,
            kind=kind,
            resource_id=resource_id,
            resource_type=resource_type,
            domain=domain,
            platform=platform,
            completed_at=completed_at,
            title=title,
            course_id=course_id,
            duration_seconds=duration_seconds,
        )
