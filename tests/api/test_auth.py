"""Bearer token handling on the progress API."""

from __future__ import annotations

import logging

import jwt
import pytest
from fastapi.testclient import TestClient

from edusmart.services import token_service
from tests.conftest import auth


def test_missing_token_rejected(client: TestClient) -> None:
    resp = client.get("/v1/progress/stats")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"
    assert resp.headers["www-authenticate"] == "Bearer"


def test_garbage_token_rejected(client: TestClient) -> None:
    resp = client.get("/v1/progress/stats", headers=auth("garbage"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_expired_token_rejected(client: TestClient) -> None:
    expired = token_service.create_access_token(sub="tee", ttl_minutes=-1)
    resp = client.get("/v1/progress/stats", headers=auth(expired))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_tampered_token_rejected(client: TestClient, token: str) -> None:
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])
    resp = client.get("/v1/progress/stats", headers=auth(tampered))
    assert resp.status_code == 401


def test_token_from_other_issuer_rejected(client: TestClient) -> None:
    foreign = jwt.encode(
        {"sub": "tee", "iss": "someone-else", "aud": "edusmart"},
        "shared-secret",
        algorithm="HS256",
    )
    resp = client.get("/v1/progress/stats", headers=auth(foreign))
    assert resp.status_code == 401


def test_valid_token_accepted(client: TestClient, token: str) -> None:
    assert client.get("/v1/progress/stats", headers=auth(token)).status_code == 200


def test_default_role_is_learner(token: str) -> None:
    claims = token_service.decode_access_token(token)
    assert claims["sub"] == "test-user"
    assert claims["roles"] == ["learner"]
    assert claims["iss"] == claims["aud"] == "edusmart"


# ---- logging ----


def test_expired_token_logs_warning(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    expired = token_service.create_access_token(sub="tee", ttl_minutes=-1)
    with caplog.at_level(logging.WARNING, logger="edusmart.api.dependencies"):
        client.get("/v1/progress/stats", headers=auth(expired))
    assert any("Expired token" in r.message for r in caplog.records)


def test_token_never_logged(
    client: TestClient, token: str, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        client.post(
            "/v1/progress/events",
            json={"resource_id": "r1", "resource_type": "video", "domain": "Python"},
            headers=auth(token),
        )
        client.get("/v1/progress/stats", headers=auth(token + "x"))
    assert token not in " ".join(caplog.messages)
