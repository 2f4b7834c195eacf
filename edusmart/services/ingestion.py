"""Validation and normalization of completion submissions.

Turns a ResourceCompletionInput or ModuleCompletionInput into an immutable
CompletionEvent.  Everything here is pure: no store access, no clock reads
(the caller passes `now`), so a rejected submission can never leave
partial state behind.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from edusmart.models.completion import (
    DEFAULT_PLATFORM,
    RESOURCE_TYPES,
    CompletionEvent,
    ModuleCompletionInput,
    ResourceCompletionInput,
)
from edusmart.models.course import Course, CourseModule
from edusmart.services.errors import (
    CourseModuleNotFoundError,
    InvalidDomainError,
    InvalidDurationError,
    InvalidResourceIdError,
    InvalidResourceTypeError,
    InvalidTimestampError,
)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _check_completed_at(
    completed_at: datetime | None, *, now: datetime, clock_skew_seconds: int
) -> datetime:
    if completed_at is None:
        return now
    completed_at = as_utc(completed_at)
    if completed_at > now + timedelta(seconds=clock_skew_seconds):
        raise InvalidTimestampError(
            f"completed_at {completed_at.isoformat()} is in the future"
        )
    return completed_at


def _check_duration(duration_seconds: float | None) -> float | None:
    if duration_seconds is None:
        return None
    if not math.isfinite(duration_seconds) or duration_seconds < 0:
        raise InvalidDurationError(
            f"duration_seconds must be >= 0 (got {duration_seconds!r})"
        )
    return float(duration_seconds)


def _check_domain(domain: str | None) -> str:
    domain = (domain or "").strip()
    if not domain:
        raise InvalidDomainError("domain must be non-empty")
    return domain


def normalize_resource(
    submission: ResourceCompletionInput,
    *,
    user_id: str,
    now: datetime,
    clock_skew_seconds: int,
) -> CompletionEvent:
    resource_type = submission.resource_type.strip().lower()
    if resource_type not in RESOURCE_TYPES:
        raise InvalidResourceTypeError(
            f"resource_type must be one of {'|'.join(RESOURCE_TYPES)} "
            f"(got {submission.resource_type!r})"
        )
    if resource_type == "module":
        raise InvalidResourceTypeError(
            "module completions must be submitted with kind=module and a course_id"
        )

    resource_id = submission.resource_id.strip()
    if not resource_id:
        raise InvalidResourceIdError("resource_id must be non-empty")

    return CompletionEvent.new(
        user_id=user_id,
        kind="resource",
        resource_id=resource_id,
        resource_type=resource_type,  # type: ignore[arg-type]
        domain=_check_domain(submission.domain),
        platform=submission.platform.strip() or DEFAULT_PLATFORM,
        completed_at=_check_completed_at(
            submission.completed_at, now=now, clock_skew_seconds=clock_skew_seconds
        ),
        title=submission.title.strip(),
        duration_seconds=_check_duration(submission.duration_seconds),
    )


def normalize_module(
    submission: ModuleCompletionInput,
    *,
    user_id: str,
    course: Course,
    modules: Sequence[CourseModule],
    now: datetime,
    clock_skew_seconds: int,
) -> CompletionEvent:
    """Resolve a module completion against its course.

    The caller has already looked the course up in the catalog (and raised
    CourseNotFoundError if it is missing); the module must belong to it.
    """
    module = next((m for m in modules if m.id == submission.module_id), None)
    if module is None:
        raise CourseModuleNotFoundError(
            f"module {submission.module_id!r} is not part of course {course.id!r}"
        )

    return CompletionEvent.new(
        user_id=user_id,
        kind="module",
        resource_id=module.id,
        resource_type="module",
        domain=_check_domain(submission.domain or course.domain),
        platform=DEFAULT_PLATFORM,
        completed_at=_check_completed_at(
            submission.completed_at, now=now, clock_skew_seconds=clock_skew_seconds
        ),
        title=module.title,
        course_id=course.id,
        duration_seconds=_check_duration(submission.duration_seconds),
    )
