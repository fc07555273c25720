"""Tests for health endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from blogapi.health import router as health_router


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness_without_database(client: TestClient) -> None:
    """Readiness fails while the database is unavailable."""
    response = client.get("/health/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unavailable"
    assert data["environment"] == "testing"
    assert data["checks"] == {"database": "error", "cache": "disabled"}


def test_readiness(app, monkeypatch: pytest.MonkeyPatch) -> None:
    """Readiness succeeds once the database answers."""
    monkeypatch.setattr(health_router, "check_database", AsyncMock(return_value=True))
    app.state.engine = object()
    app.state.redis = AsyncMock()

    response = TestClient(app).get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "cache": "ok"}


def test_readiness_reports_cache_errors(app, monkeypatch: pytest.MonkeyPatch) -> None:
    """A failing cache is reported without failing readiness."""
    monkeypatch.setattr(health_router, "check_database", AsyncMock(return_value=True))
    app.state.engine = object()
    app.state.redis = AsyncMock()
    app.state.redis.ping.side_effect = RedisConnectionError("down")

    response = TestClient(app).get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["cache"] == "error"


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "blogapi"
    assert "version" in data
    assert "environment" in data


def test_unknown_route(client: TestClient) -> None:
    """Unknown routes use the error envelope."""
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
