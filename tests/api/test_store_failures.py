"""Behaviour when the progress store is down.

Writes fail with 503 and a Retry-After header.  The read views degrade to
their default values instead of failing the page.
"""

from __future__ import annotations

import datetime

import pytest
from fastapi.testclient import TestClient

from edusmart.api.dependencies import get_progress_service
from edusmart.main import app
from edusmart.repos.achievement_repo import InMemoryAchievementRepo
from edusmart.repos.course_progress_repo import InMemoryCourseProgressRepo
from edusmart.repos.event_repo import InMemoryCompletionEventRepo
from edusmart.repos.user_stats_repo import InMemoryUserStatsRepo
from edusmart.services.errors import StoreUnavailableError
from edusmart.services.progress_service import build_progress_service
from tests.conftest import auth


def _down() -> None:
    raise StoreUnavailableError("connection refused")


class _DownEventRepo(InMemoryCompletionEventRepo):
    async def append(self, event):
        _down()

    async def list_for_user(self, user_id: str):
        _down()

    async def latest_sequence(self, user_id: str):
        _down()


class _DownStatsRepo(InMemoryUserStatsRepo):
    async def get(self, user_id: str):
        _down()


class _DownAchievementRepo(InMemoryAchievementRepo):
    async def list_for_user(self, user_id: str):
        _down()


class _DownCourseProgressRepo(InMemoryCourseProgressRepo):
    async def get(self, user_id: str, course_id: str):
        _down()

    async def list_for_user(self, user_id: str):
        _down()


@pytest.fixture
def store_down():
    service = build_progress_service(
        events=_DownEventRepo(),
        stats=_DownStatsRepo(),
        achievements=_DownAchievementRepo(),
        course_progress=_DownCourseProgressRepo(),
    )
    app.dependency_overrides[get_progress_service] = lambda: service
    yield
    app.dependency_overrides.clear()


def test_write_returns_503_with_retry_after(
    client: TestClient, token: str, store_down: None
) -> None:
    resp = client.post(
        "/v1/progress/events",
        json={"resource_id": "r1", "resource_type": "video", "domain": "Python"},
        headers=auth(token),
    )
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "5"
    assert resp.json()["detail"]["code"] == "store_unavailable"


def test_validation_still_runs_first(client: TestClient, token: str, store_down: None) -> None:
    resp = client.post(
        "/v1/progress/events",
        json={"resource_id": "r1", "resource_type": "podcast", "domain": "Python"},
        headers=auth(token),
    )
    assert resp.status_code == 422


def test_derived_reads_degrade_to_empty(
    client: TestClient, token: str, store_down: None
) -> None:
    assert client.get("/v1/progress/domains", headers=auth(token)).json() == {}
    assert client.get("/v1/progress/timeline", headers=auth(token)).json() == []


def test_heatmap_degrades_to_zero_grid(
    client: TestClient, token: str, store_down: None
) -> None:
    resp = client.get("/v1/progress/heatmap?days=30", headers=auth(token))
    assert resp.status_code == 200
    days = resp.json()
    assert len(days) == 30
    assert all(d["count"] == 0 for d in days)
    today = datetime.datetime.now(datetime.UTC).date()
    assert datetime.date.fromisoformat(days[-1]["date"]) == today


def test_stats_degrade_to_initial(client: TestClient, token: str, store_down: None) -> None:
    resp = client.get("/v1/progress/stats", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["xp"] == 0
    assert resp.json()["level"] == "Beginner"


def test_achievements_degrade_to_empty(
    client: TestClient, token: str, store_down: None
) -> None:
    resp = client.get("/v1/achievements", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json() == []


def test_course_progress_degrades_to_empty(
    client: TestClient, token: str, store_down: None
) -> None:
    resp = client.get(
        "/v1/progress/courses/web-development-fundamentals", headers=auth(token)
    )
    assert resp.status_code == 200
    assert resp.json()["percent_complete"] == 0
    assert resp.json()["completed_module_ids"] == []

    assert client.get("/v1/progress/courses", headers=auth(token)).json() == []


def test_unknown_course_is_still_404(
    client: TestClient, token: str, store_down: None
) -> None:
    assert client.get("/v1/progress/courses/nope", headers=auth(token)).status_code == 404
