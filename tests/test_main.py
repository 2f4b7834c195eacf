from __future__ import annotations

from fastapi.testclient import TestClient

from edusmart.main import app


def test_app_title() -> None:
    assert app.title == "edusmart-progress"


def test_routes_are_registered() -> None:
    paths = {getattr(route, "path", None) for route in app.routes}
    for path in (
        "/health",
        "/ready",
        "/metrics",
        "/v1/progress/events",
        "/v1/progress/courses",
        "/v1/progress/courses/{course_id}",
        "/v1/progress/domains",
        "/v1/progress/stats",
        "/v1/progress/heatmap",
        "/v1/progress/timeline",
        "/v1/achievements",
        "/v1/courses",
        "/v1/tutor/messages",
        "/v1/tutor/session",
    ):
        assert path in paths


def test_lifespan_starts_without_backing_stores() -> None:
    with TestClient(app) as client:
        assert client.get("/health").json()["status"] == "ok"
