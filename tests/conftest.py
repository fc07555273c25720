"""Shared fixtures: in-memory collaborators, a wired service and a test app."""

import os


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncIterator, Callable, Iterator  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from blogapi.auth.security import create_access_token  # noqa: E402
from blogapi.comments.rate_limit import RateLimiter  # noqa: E402
from blogapi.comments.rendering import HtmlContentRenderer  # noqa: E402
from blogapi.comments.service import CommentService  # noqa: E402
from blogapi.comments.tree import CommentTreeBuilder  # noqa: E402
from blogapi.config import Settings  # noqa: E402
from blogapi.core.cache import CacheBackend  # noqa: E402
from blogapi.core.tasks import BackgroundDispatcher  # noqa: E402
from blogapi.main import create_app  # noqa: E402
from blogapi.notifications.service import NotificationService  # noqa: E402

from .fakes import (  # noqa: E402
    FakeAuthorDirectory,
    FakeCache,
    FakeCommentRepository,
    FakePostDirectory,
)


POST_ID = 1


def build_service(
    repository: FakeCommentRepository,
    posts: FakePostDirectory,
    authors: FakeAuthorDirectory,
    cache: CacheBackend,
    dispatcher: BackgroundDispatcher,
    **options: bool,
) -> CommentService:
    """Wire a CommentService the way the application does, over fakes."""
    tree = CommentTreeBuilder(repository, authors, cache)
    return CommentService(
        repository=repository,
        posts=posts,
        authors=authors,
        renderer=HtmlContentRenderer(),
        cache=cache,
        tree=tree,
        rate_limiter=RateLimiter(cache, window_seconds=100),
        notifications=NotificationService(cache),
        dispatcher=dispatcher,
        **options,
    )


@pytest.fixture
def post_author() -> UUID:
    return uuid4()


@pytest.fixture
def alice() -> UUID:
    return uuid4()


@pytest.fixture
def bob() -> UUID:
    return uuid4()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def repository() -> FakeCommentRepository:
    return FakeCommentRepository()


@pytest.fixture
def posts(post_author: UUID) -> FakePostDirectory:
    return FakePostDirectory({POST_ID: post_author})


@pytest.fixture
def authors(post_author: UUID, alice: UUID, bob: UUID) -> FakeAuthorDirectory:
    return FakeAuthorDirectory({post_author: "writer", alice: "alice", bob: "bob"})


@pytest_asyncio.fixture
async def dispatcher() -> AsyncIterator[BackgroundDispatcher]:
    """A running dispatcher, drained and stopped after the test."""
    dispatcher = BackgroundDispatcher(queue_size=100, stop_timeout=1.0)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def service(
    repository: FakeCommentRepository,
    posts: FakePostDirectory,
    authors: FakeAuthorDirectory,
    cache: FakeCache,
    dispatcher: BackgroundDispatcher,
) -> CommentService:
    return build_service(repository, posts, authors, cache, dispatcher)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="testing",
        log_to_file=False,
        log_requests=False,
        redis_enabled=False,
        websocket_heartbeat_interval=30.0,
    )


@asynccontextmanager
async def preset_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the dispatcher preset on ``app.state`` instead of connecting out."""
    dispatcher: BackgroundDispatcher = app.state.dispatcher
    await dispatcher.start()
    yield
    await dispatcher.stop()


@pytest.fixture
def app(
    test_settings: Settings,
    repository: FakeCommentRepository,
    posts: FakePostDirectory,
    authors: FakeAuthorDirectory,
    cache: FakeCache,
) -> FastAPI:
    """Application with every service preset on ``app.state``.

    Its lifespan only starts and stops the preset dispatcher.
    """
    app = create_app(test_settings, app_lifespan=preset_lifespan)
    dispatcher = BackgroundDispatcher(queue_size=100, stop_timeout=1.0)
    service = build_service(repository, posts, authors, cache, dispatcher)

    app.state.redis = None
    app.state.engine = None
    app.state.cache = cache
    app.state.dispatcher = dispatcher
    app.state.notification_service = service.notifications
    app.state.comment_service = service
    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make_token(user_id: UUID, role: str = "user") -> str:
        return create_access_token({"sub": str(user_id), "role": role})

    return _make_token


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[..., dict[str, str]]:
    def _auth_headers(user_id: UUID, role: str = "user") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _auth_headers
