"""Tests for application startup and shutdown."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from blogapi import main
from blogapi.comments.service import CommentService
from blogapi.config import Settings
from blogapi.core.cache import NullCache


@pytest.fixture
def shutdown_database(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock()
    monkeypatch.setattr(main, "shutdown_database", mock)
    return mock


class TestLifespan:
    """Tests for the default lifespan wiring."""

    def test_starts_without_database(
        self, test_settings, monkeypatch: pytest.MonkeyPatch, shutdown_database
    ) -> None:
        monkeypatch.setattr(
            main, "init_database", AsyncMock(side_effect=OSError("connection refused"))
        )
        app = main.create_app(test_settings)

        with TestClient(app) as client:
            response = client.get("/api/posts/1/comments")
            dispatcher = app.state.dispatcher

            assert response.status_code == 503
            assert response.json()["code"] == "SERVICE_UNAVAILABLE"
            assert isinstance(app.state.cache, NullCache)
            assert app.state.engine is None
            assert dispatcher.is_running is True

        assert dispatcher.is_running is False
        shutdown_database.assert_awaited_once_with(None)

    def test_wires_comment_service(
        self, test_settings, monkeypatch: pytest.MonkeyPatch, shutdown_database
    ) -> None:
        engine = MagicMock()
        monkeypatch.setattr(
            main, "init_database", AsyncMock(return_value=(engine, MagicMock()))
        )
        app = main.create_app(test_settings)

        with TestClient(app):
            assert isinstance(app.state.comment_service, CommentService)
            assert app.state.comment_service.cache is app.state.cache
            assert app.state.engine is engine

        shutdown_database.assert_awaited_once_with(engine)


class TestCreateApp:
    """Tests for create_app."""

    @pytest.mark.parametrize(
        ("environment", "docs_url"),
        [("development", "/docs"), ("production", None), ("testing", None)],
    )
    def test_docs_only_in_development(self, environment, docs_url) -> None:
        app = main.create_app(Settings(environment=environment, log_to_file=False))

        assert app.docs_url == docs_url
        assert (app.openapi_url is not None) is (docs_url is not None)
