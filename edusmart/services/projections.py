"""Read-only views re-derived from the completion event log."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from edusmart.models.completion import CompletionEvent
from edusmart.services.aggregator import day_of, dedupe

DEFAULT_HEATMAP_DAYS = 365
MAX_HEATMAP_DAYS = 730
DEFAULT_TIMELINE_LIMIT = 20
MAX_TIMELINE_LIMIT = 100


@dataclass(frozen=True, slots=True)
class HeatmapDay:
    day: date
    count: int


def activity_heatmap(
    events: Sequence[CompletionEvent],
    *,
    today: date,
    window_days: int = DEFAULT_HEATMAP_DAYS,
) -> list[HeatmapDay]:
    """Dense per-day counts for the `window_days` days ending at `today`.

    Days without activity are present with count 0 so the caller can
    render a fixed-size grid.  Oldest day first.
    """
    if window_days <= 0:
        return []
    start = today - timedelta(days=window_days - 1)
    per_day = Counter(
        day_of(e) for e in dedupe(events) if start <= day_of(e) <= today
    )
    days = (start + timedelta(days=offset) for offset in range(window_days))
    return [HeatmapDay(day=d, count=per_day.get(d, 0)) for d in days]


def timeline(
    events: Sequence[CompletionEvent], *, limit: int = DEFAULT_TIMELINE_LIMIT
) -> list[CompletionEvent]:
    """Most recent counted events across all domains, newest first.

    sorted() is stable, so events with the same completed_at keep their
    insertion order.
    """
    if limit <= 0:
        return []
    ordered = sorted(dedupe(events), key=lambda e: e.completed_at, reverse=True)
    return ordered[:limit]
