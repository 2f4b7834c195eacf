"""Tests for the stateful ingestion path and its read side.

Each test builds its own service over fresh in-memory stores and a fixed
clock, so nothing leaks between tests through the module singletons.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from prometheus_client import REGISTRY

from edusmart.models.completion import ModuleCompletionInput, ResourceCompletionInput
from edusmart.models.course import Course, CourseModule
from edusmart.repos.achievement_repo import InMemoryAchievementRepo
from edusmart.repos.course_catalog import InMemoryCourseCatalog
from edusmart.repos.course_progress_repo import InMemoryCourseProgressRepo
from edusmart.repos.event_repo import InMemoryCompletionEventRepo
from edusmart.repos.user_stats_repo import InMemoryUserStatsRepo
from edusmart.services.cache import InMemoryCacheService, domain_stats_key
from edusmart.services.errors import (
    CourseModuleNotFoundError,
    CourseNotFoundError,
    InvalidResourceTypeError,
    StoreUnavailableError,
)
from edusmart.services.locks import InMemoryUserLocks
from edusmart.services.progress_service import ProgressService

NOW = datetime(2026, 3, 10, 12, tzinfo=UTC)


class Stores:
    def __init__(self) -> None:
        self.events = InMemoryCompletionEventRepo()
        self.stats = InMemoryUserStatsRepo()
        self.achievements = InMemoryAchievementRepo()
        self.course_progress = InMemoryCourseProgressRepo()
        self.catalog = InMemoryCourseCatalog()
        self.cache = InMemoryCacheService()
        self.locks = InMemoryUserLocks()
        self.now = NOW

    def service(self, **overrides) -> ProgressService:
        parts = {
            "events": self.events,
            "stats": self.stats,
            "achievements": self.achievements,
            "course_progress": self.course_progress,
            "catalog": self.catalog,
            "cache": self.cache,
            "locks": self.locks,
            "clock": lambda: self.now,
        }
        parts.update(overrides)
        return ProgressService(**parts)


@pytest.fixture
def stores() -> Stores:
    stores = Stores()
    course = Course(id="py", slug="python-basics", title="Python Basics", domain="Python")
    modules = [
        CourseModule(id=f"m{i}", course_id="py", position=i, title=f"Module {i}")
        for i in range(1, 5)
    ]
    asyncio.run(stores.catalog.add_course(course, modules))
    return stores


def _resource(resource_id: str = "r1", **overrides) -> ResourceCompletionInput:
    fields = {
        "resource_id": resource_id,
        "resource_type": "video",
        "domain": "Web Development",
        "platform": "YouTube",
    }
    fields.update(overrides)
    return ResourceCompletionInput(**fields)


def _sample(name: str, labels: dict) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels)
    return value if value is not None else 0.0


# ---- first completion ----


def test_first_resource_awards_xp_and_achievement(stores: Stores) -> None:
    service = stores.service()
    result = asyncio.run(service.record_completion("u1", _resource()))

    assert result.duplicate is False
    assert result.event.sequence == 1
    assert result.user_stats.xp == 175
    assert result.user_stats.completed_resources == 1
    assert result.user_stats.streak_days == 1
    assert [a.type for a in result.new_achievements] == ["first-resource"]
    assert result.domain_stats.total_completed == 1
    assert result.course_progress is None

    achievements = asyncio.run(service.list_achievements("u1"))
    assert [a.type for a in achievements] == ["first-resource"]


def test_duplicate_submission_changes_nothing(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource()))

    before = _sample("completion_events_total", {"outcome": "duplicate"})
    stores.now = NOW + timedelta(days=1)
    retry = asyncio.run(service.record_completion("u1", _resource()))
    after = _sample("completion_events_total", {"outcome": "duplicate"})

    assert retry.duplicate is True
    assert retry.new_achievements == ()
    assert retry.user_stats.xp == 175
    assert retry.domain_stats.total_completed == 1
    assert after - before == 1
    # The retry is still in the log.
    assert len(asyncio.run(stores.events.list_for_user("u1"))) == 2


def test_milestone_is_awarded_once(stores: Stores) -> None:
    service = stores.service()
    awarded = []
    for i in range(1, 7):
        result = asyncio.run(service.record_completion("u1", _resource(f"r{i}")))
        awarded.extend(a.type for a in result.new_achievements)

    assert awarded.count("resource-explorer") == 1
    assert awarded == ["first-resource", "resource-explorer", "reached-intermediate"]
    stats = asyncio.run(service.get_user_stats("u1"))
    assert stats.level == "Intermediate"
    assert stats.xp == 6 * 75 + 100 + 250 + 500


# ---- module completions ----


def test_course_progress_half_then_complete(stores: Stores) -> None:
    service = stores.service()

    for module_id in ("m1", "m2"):
        result = asyncio.run(
            service.record_completion(
                "u1", ModuleCompletionInput(course_id="py", module_id=module_id)
            )
        )
    assert result.course_progress is not None
    assert result.course_progress.percent_complete == 50
    assert result.event.domain == "Python"
    assert result.event.resource_type == "module"

    for module_id in ("m3", "m4"):
        result = asyncio.run(
            service.record_completion(
                "u1", ModuleCompletionInput(course_id="py", module_id=module_id)
            )
        )
    progress = asyncio.run(service.get_course_progress("u1", "py"))
    assert progress.percent_complete == 100
    assert progress.completed is True
    assert progress.completed_module_count == 4


def test_course_progress_for_untouched_course_is_empty(stores: Stores) -> None:
    progress = asyncio.run(stores.service().get_course_progress("u1", "py"))
    assert progress.percent_complete == 0
    assert progress.total_module_count == 4


def test_unknown_course_rejected_without_state(stores: Stores) -> None:
    service = stores.service()
    with pytest.raises(CourseNotFoundError):
        asyncio.run(
            service.record_completion(
                "u1", ModuleCompletionInput(course_id="nope", module_id="m1")
            )
        )
    with pytest.raises(CourseNotFoundError):
        asyncio.run(service.get_course_progress("u1", "nope"))
    assert asyncio.run(stores.events.list_for_user("u1")) == []


def test_module_outside_course_rejected_without_state(stores: Stores) -> None:
    service = stores.service()
    with pytest.raises(CourseModuleNotFoundError):
        asyncio.run(
            service.record_completion(
                "u1", ModuleCompletionInput(course_id="py", module_id="m9")
            )
        )
    assert asyncio.run(stores.events.list_for_user("u1")) == []
    assert asyncio.run(stores.course_progress.list_for_user("u1")) == []


def test_same_module_id_in_two_courses_counts_in_each(stores: Stores) -> None:
    js = Course(id="js", slug="javascript-basics", title="JavaScript Basics", domain="Web Development")
    asyncio.run(
        stores.catalog.add_course(
            js,
            [
                CourseModule(id="m1", course_id="js", position=1, title="Syntax"),
                CourseModule(id="m2", course_id="js", position=2, title="DOM"),
            ],
        )
    )
    service = stores.service()
    asyncio.run(service.record_completion("u1", ModuleCompletionInput(course_id="py", module_id="m1")))

    result = asyncio.run(
        service.record_completion("u1", ModuleCompletionInput(course_id="js", module_id="m1"))
    )
    assert result.duplicate is False
    assert result.course_progress is not None
    assert result.course_progress.percent_complete == 50
    assert result.user_stats.completed_resources == 2


def test_resource_claiming_module_type_is_rejected(stores: Stores) -> None:
    service = stores.service()
    with pytest.raises(InvalidResourceTypeError):
        asyncio.run(service.record_completion("u1", _resource("m1", resource_type="module")))

    result = asyncio.run(
        service.record_completion("u1", ModuleCompletionInput(course_id="py", module_id="m1"))
    )
    assert result.duplicate is False
    assert result.course_progress.percent_complete == 25


def test_untouched_course_points_at_first_module(stores: Stores) -> None:
    progress = asyncio.run(stores.service().get_course_progress("u1", "py"))
    assert progress.current_module_id == "m1"
    assert progress.completed_module_ids == frozenset()


def test_list_course_progress(stores: Stores) -> None:
    service = stores.service()
    assert asyncio.run(service.list_course_progress("u1")) == []
    asyncio.run(service.record_completion("u1", ModuleCompletionInput(course_id="py", module_id="m2")))

    [progress] = asyncio.run(service.list_course_progress("u1"))
    assert progress.course_id == "py"
    assert progress.current_module_id == "m1"


# ---- validation ----


def test_invalid_submission_leaves_no_state(stores: Stores) -> None:
    service = stores.service()
    before = _sample("completion_events_total", {"outcome": "rejected"})

    with pytest.raises(InvalidResourceTypeError):
        asyncio.run(service.record_completion("u1", _resource(resource_type="podcast")))

    assert _sample("completion_events_total", {"outcome": "rejected"}) - before == 1
    assert asyncio.run(stores.events.list_for_user("u1")) == []
    assert asyncio.run(stores.stats.get("u1")) is None


# ---- reads ----


def test_domain_breakdown_reflects_write_after_cached_read(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource("r1")))

    first = asyncio.run(service.get_domain_breakdown("u1"))
    assert first["Web Development"].total_completed == 1
    assert asyncio.run(stores.cache.get(domain_stats_key("u1"))) is not None

    asyncio.run(service.record_completion("u1", _resource("r2", domain="Cybersecurity")))
    assert asyncio.run(stores.cache.get(domain_stats_key("u1"))) is None

    second = asyncio.run(service.get_domain_breakdown("u1"))
    assert set(second) == {"Web Development", "Cybersecurity"}


def test_domain_breakdown_served_from_cache(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource("r1", duration_seconds=1800)))

    miss = asyncio.run(service.get_domain_breakdown("u1"))
    hit = asyncio.run(service.get_domain_breakdown("u1"))
    assert hit == miss
    assert hit["Web Development"].total_hours == 0.5


class _UndeletableCache(InMemoryCacheService):
    async def delete(self, key: str) -> None:
        raise ConnectionError("cache unreachable")


def test_failed_invalidation_never_serves_stale_stats(stores: Stores) -> None:
    service = stores.service(cache=_UndeletableCache())
    asyncio.run(service.record_completion("u1", _resource("r1")))
    assert asyncio.run(service.get_domain_breakdown("u1"))["Web Development"].total_completed == 1

    result = asyncio.run(service.record_completion("u1", _resource("r2")))
    assert result.duplicate is False

    breakdown = asyncio.run(service.get_domain_breakdown("u1"))
    assert breakdown["Web Development"].total_completed == 2


def test_entry_from_older_log_is_not_served(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource("r1")))
    asyncio.run(service.get_domain_breakdown("u1"))
    stale = asyncio.run(stores.cache.get(domain_stats_key("u1")))

    asyncio.run(service.record_completion("u1", _resource("r2")))
    # A reader that computed its breakdown before the write stores it late.
    asyncio.run(stores.cache.set(domain_stats_key("u1"), stale, ttl_seconds=300))

    breakdown = asyncio.run(service.get_domain_breakdown("u1"))
    assert breakdown["Web Development"].total_completed == 2


def test_heatmap_and_timeline(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource("r1", completed_at=NOW - timedelta(days=1))))
    asyncio.run(service.record_completion("u1", _resource("r2")))

    heatmap = asyncio.run(service.get_activity_heatmap("u1", days=7))
    assert len(heatmap) == 7
    assert [d.count for d in heatmap[-2:]] == [1, 1]

    recent = asyncio.run(service.get_timeline("u1", limit=1))
    assert [e.resource_id for e in recent] == ["r2"]


def test_users_are_isolated(stores: Stores) -> None:
    service = stores.service()
    asyncio.run(service.record_completion("u1", _resource()))

    assert asyncio.run(service.get_user_stats("u2")).xp == 0
    assert asyncio.run(service.list_achievements("u2")) == []
    assert asyncio.run(service.get_domain_breakdown("u2")) == {}


# ---- concurrency ----


def test_concurrent_distinct_resources_count_both(stores: Stores) -> None:
    service = stores.service()

    async def submit_both():
        return await asyncio.gather(
            service.record_completion("u1", _resource("a")),
            service.record_completion("u1", _resource("b")),
        )

    asyncio.run(submit_both())
    stats = asyncio.run(service.get_user_stats("u1"))
    assert stats.completed_resources == 2
    assert stats.xp == 2 * 75 + 100
    assert stats.version == 2


def test_concurrent_identical_submissions_count_once(stores: Stores) -> None:
    service = stores.service()

    async def submit_twice():
        return await asyncio.gather(
            service.record_completion("u1", _resource()),
            service.record_completion("u1", _resource()),
        )

    results = asyncio.run(submit_twice())
    assert sorted(r.duplicate for r in results) == [False, True]
    awarded = [a.type for r in results for a in r.new_achievements]
    assert awarded == ["first-resource"]
    assert asyncio.run(service.get_user_stats("u1")).xp == 175


# ---- store behaviour ----


class _StaleAchievementRepo(InMemoryAchievementRepo):
    """Lists nothing but already holds every achievement."""

    async def list_for_user(self, user_id: str):
        return []

    async def add_if_absent(self, achievement) -> bool:
        return False


def test_bonus_withheld_when_achievement_already_stored(stores: Stores) -> None:
    service = stores.service(achievements=_StaleAchievementRepo())
    result = asyncio.run(service.record_completion("u1", _resource()))

    assert result.new_achievements == ()
    assert result.user_stats.xp == 75


class _FailingEventRepo(InMemoryCompletionEventRepo):
    async def append(self, event):
        raise StoreUnavailableError("event store down")


def test_store_failure_propagates(stores: Stores) -> None:
    service = stores.service(events=_FailingEventRepo())
    with pytest.raises(StoreUnavailableError):
        asyncio.run(service.record_completion("u1", _resource()))
    assert asyncio.run(stores.stats.get("u1")) is None


def test_commit_hook_runs_once_per_recorded_event(stores: Stores) -> None:
    commits = []

    async def commit() -> None:
        commits.append(1)

    service = stores.service(commit=commit)
    asyncio.run(service.record_completion("u1", _resource()))
    asyncio.run(service.record_completion("u1", _resource()))  # duplicate

    assert len(commits) == 1
