from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from edusmart.main import app
from edusmart.repos.course_catalog import course_catalog
from edusmart.services import progress_service as progress_module
from edusmart.services import token_service
from edusmart.services.cache import cache_service
from edusmart.services.locks import user_locks
from edusmart.services.tutor import tutor_sessions

# Ensure repo root is on sys.path so `import edusmart` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_progress_state() -> None:
    """Clear the in-memory event log and derived state between tests."""
    progress_module.event_repo.clear()
    progress_module.user_stats_repo.clear()
    progress_module.achievement_repo.clear()
    progress_module.course_progress_repo.clear()


@pytest.fixture(autouse=True)
def reset_catalog() -> None:
    """Drop courses created by a test and restore the starter catalog."""
    course_catalog.reset()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_locks() -> None:
    if hasattr(user_locks, "_locks"):
        user_locks._locks.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_tutor_sessions() -> None:
    tutor_sessions.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with the default learner role."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


def at(day: int, hour: int = 12, month: int = 3, year: int = 2026) -> datetime:
    """UTC timestamp helper for building event logs."""
    return datetime(year, month, day, hour, tzinfo=UTC)
