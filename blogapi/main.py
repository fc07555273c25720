"""blogapi - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import Lifespan

from blogapi.comments.exceptions import CommentError
from blogapi.comments.rate_limit import RateLimiter
from blogapi.comments.rendering import HtmlContentRenderer
from blogapi.comments.repository import (
    SqlAuthorDirectory,
    SqlCommentRepository,
    SqlPostDirectory,
)
from blogapi.comments.router import router as comments_router
from blogapi.comments.service import CommentService
from blogapi.comments.tree import CommentTreeBuilder
from blogapi.config import Settings, get_settings
from blogapi.core.cache import CacheBackend, NullCache, RedisCache
from blogapi.core.context import get_request_id
from blogapi.core.database import init_database, shutdown_database
from blogapi.core.logging import configure_structlog, get_logger
from blogapi.core.middleware import RequestContextMiddleware
from blogapi.core.redis import init_redis, shutdown_redis
from blogapi.core.tasks import BackgroundDispatcher
from blogapi.health.router import router as health_router
from blogapi.notifications.service import NotificationService
from blogapi.notifications.websocket_router import router as notifications_ws_router


logger = get_logger(__name__)

# Error codes for framework-raised HTTP errors
_HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "UNAUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_503_SERVICE_UNAVAILABLE: "SERVICE_UNAVAILABLE",
}


def build_comment_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache: CacheBackend,
    notification_service: NotificationService,
    dispatcher: BackgroundDispatcher,
) -> CommentService:
    """Wire the comment service and its collaborators."""
    repository = SqlCommentRepository(
        session_factory, max_depth=settings.comments_max_nesting_depth
    )
    authors = SqlAuthorDirectory(session_factory)

    tree = CommentTreeBuilder(
        repository,
        authors,
        cache,
        page_size=settings.comments_page_size,
        max_depth=settings.comments_max_nesting_depth,
        list_ttl=settings.comments_list_cache_ttl,
        count_ttl=settings.comments_count_cache_ttl,
    )

    return CommentService(
        repository=repository,
        posts=SqlPostDirectory(session_factory),
        authors=authors,
        renderer=HtmlContentRenderer(),
        cache=cache,
        tree=tree,
        rate_limiter=RateLimiter(cache, settings.comments_rate_limit_seconds),
        notifications=notification_service,
        dispatcher=dispatcher,
        max_length=settings.comments_max_length,
        max_depth=settings.comments_max_nesting_depth,
        notify_post_author=settings.notify_post_author,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Redis and the database are optional: without them the app starts with
    ``NullCache`` and no comment service.
    """
    settings: Settings = app.state.settings
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    cache: CacheBackend = NullCache()
    if settings.redis_enabled:
        try:
            redis_client = await init_redis(settings)
            cache = RedisCache(redis_client, poll_timeout=settings.notifications_poll_timeout)
        except (redis.RedisError, OSError) as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - caching, rate limiting and "
                "real-time notifications disabled",
            )
    app.state.redis = redis_client
    app.state.cache = cache

    dispatcher = BackgroundDispatcher(queue_size=settings.background_queue_size)
    await dispatcher.start()
    app.state.dispatcher = dispatcher

    app.state.notification_service = NotificationService(cache)
    logger.info("notification_service_initialized", redis_enabled=cache.enabled)

    # Initialize PostgreSQL
    engine = None
    try:
        engine, session_factory = await init_database(settings)
        app.state.comment_service = build_comment_service(
            settings,
            session_factory,
            cache,
            app.state.notification_service,
            dispatcher,
        )
        logger.info("comment_service_initialized")
    except (SQLAlchemyError, OSError) as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )
    app.state.engine = engine

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await dispatcher.stop()
    await shutdown_redis(redis_client)
    await shutdown_database(engine)


def _error_body(request: Request, message: str, code: str) -> dict[str, str | None]:
    request_id = getattr(request.state, "request_id", None) or get_request_id() or None
    return {"error": message, "code": code, "request_id": request_id}


def create_app(
    settings: Settings | None = None,
    app_lifespan: Lifespan[FastAPI] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings, defaults to the environment
        app_lifespan: Replaces the default startup and shutdown wiring
    """
    settings = settings or get_settings()

    # SECURITY: Always set debug=False to prevent Starlette's ServerErrorMiddleware
    # from exposing stack traces in responses.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Blog backend - threaded comments and realtime notifications",
        debug=False,
        lifespan=app_lifespan or lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )
    app.state.settings = settings

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    @app.exception_handler(CommentError)
    async def comment_error_handler(request: Request, exc: CommentError) -> ORJSONResponse:
        """Render comment errors with their stable code."""
        log = (
            logger.error
            if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
            else logger.info
        )
        log(
            "comment_request_rejected",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.message, exc.code),
        )

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request, message, _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        content = _error_body(request, "Validation error", "VALIDATION_ERROR")
        content["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, "Internal server error", "INTERNAL_ERROR"),
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(notifications_ws_router)

    return app


# Configure logging early (before the first request)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

app = create_app(settings)
