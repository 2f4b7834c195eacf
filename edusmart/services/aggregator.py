"""Pure folds from the completion event log into derived statistics.

Nothing here keeps state between calls: every statistic can be rebuilt
from the log at any time.  Calendar days are UTC dates of completed_at.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta

from edusmart.models.completion import CompletionEvent
from edusmart.models.course import CourseModule, CourseProgress
from edusmart.models.stats import DomainStatistics


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(value + 0.5)


def day_of(event: CompletionEvent) -> date:
    return event.completed_at.date()


def dedupe(events: Iterable[CompletionEvent]) -> list[CompletionEvent]:
    """Keep the first occurrence of each dedup key in log order."""
    seen: set[tuple[str, str, str, str]] = set()
    out: list[CompletionEvent] = []
    for event in sorted(events, key=lambda e: e.sequence):
        if event.dedup_key in seen:
            continue
        seen.add(event.dedup_key)
        out.append(event)
    return out


def streak_days(events: Iterable[CompletionEvent]) -> int:
    """Length of the run of consecutive active days ending at the latest one.

    Several events on the same day count once.  The run is anchored at the
    most recent activity day, not at today.
    """
    days = sorted({day_of(e) for e in events}, reverse=True)
    if not days:
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if newer - older != timedelta(days=1):
            break
        streak += 1
    return streak


def best_day_count(events: Iterable[CompletionEvent]) -> int:
    per_day = Counter(day_of(e) for e in events)
    return max(per_day.values(), default=0)


def last_activity_at(events: Iterable[CompletionEvent]) -> datetime | None:
    return max((e.completed_at for e in events), default=None)


def aggregate(events: Sequence[CompletionEvent], domain: str) -> DomainStatistics:
    """Fold one user's log into statistics for a single domain.

    `events` may contain retries; counting uses the deduplicated set while
    last_activity_at considers every submission.
    """
    in_domain = [e for e in events if e.domain == domain]
    countable = dedupe(in_domain)

    counts_by_type = dict(Counter(e.resource_type for e in countable))
    seconds = sum(e.duration_seconds for e in countable if e.duration_seconds is not None)

    return DomainStatistics(
        domain=domain,
        total_completed=sum(counts_by_type.values()),
        counts_by_type=counts_by_type,
        total_hours=round(seconds / 3600, 2),
        streak_days=streak_days(countable),
        best_day_count=best_day_count(countable),
        last_activity_at=last_activity_at(in_domain),
    )


def aggregate_by_domain(
    events: Sequence[CompletionEvent],
) -> dict[str, DomainStatistics]:
    domains = sorted({e.domain for e in events})
    return {domain: aggregate(events, domain) for domain in domains}


def course_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, round_half_up(completed / total * 100)))


def course_progress(
    previous: CourseProgress,
    modules: Sequence[CourseModule],
    event: CompletionEvent,
) -> CourseProgress:
    """Apply one module completion to a course's progress projection.

    The percentage is the max of the stored and the recomputed value, so
    it never decreases.
    """
    module_ids = {m.id for m in modules}
    completed = previous.completed_module_ids | ({event.resource_id} & module_ids)
    total = len(modules)

    ordered = sorted(modules, key=lambda m: m.position)
    remaining = [m for m in ordered if m.id not in completed]
    if remaining:
        current_module_id: str | None = remaining[0].id
    else:
        current_module_id = ordered[-1].id if ordered else None

    last_seen = previous.last_activity_at
    if last_seen is None or event.completed_at > last_seen:
        last_seen = event.completed_at

    return CourseProgress(
        user_id=previous.user_id,
        course_id=previous.course_id,
        completed_module_ids=frozenset(completed),
        total_module_count=total,
        percent_complete=max(
            previous.percent_complete, course_percent(len(completed), total)
        ),
        current_module_id=current_module_id,
        last_activity_at=last_seen,
    )
