"""Comment Engine API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from comment_engine.comments.cassandra_store import CassandraCommentStore
from comment_engine.comments.collaborators import (
    InMemoryTargetOwnership,
    InMemoryUserDirectory,
    NotificationDispatcher,
    RedisNotificationSink,
)
from comment_engine.comments.router import admin_router as comments_admin_router
from comment_engine.comments.router import router as comments_router
from comment_engine.comments.service import CommentService
from comment_engine.comments.store import CommentStore, InMemoryCommentStore
from comment_engine.config import get_settings
from comment_engine.core.context import get_request_id
from comment_engine.core.database import (
    init_async_cassandra,
    shutdown_async_cassandra,
)
from comment_engine.core.logging import configure_structlog, get_logger
from comment_engine.core.middleware import RequestContextMiddleware
from comment_engine.core.redis import init_redis, shutdown_redis
from comment_engine.health import router as health_router
from comment_engine.moderation import (
    ModerationPipeline,
    SensitiveWordService,
    init_default_matcher,
)
from comment_engine.ranking import HotRankingSweeper, ScoreEngine
from comment_engine.reports.service import ReportFoldEngine


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    redis: Any = None
    store: CommentStore | None = None
    notifications: NotificationDispatcher | None = None
    comment_service: CommentService | None = None
    report_engine: ReportFoldEngine | None = None
    word_service: SensitiveWordService | None = None
    score_engine: ScoreEngine | None = None
    sweeper: HotRankingSweeper | None = None


app_state = AppState()


async def _init_store(redis_client: Any) -> CommentStore:
    if settings.storage_backend == "cassandra":
        if redis_client is None:
            msg = "Cassandra comment store requires Redis for id and floor counters"
            raise RuntimeError(msg)
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        return CassandraCommentStore(
            session=session,
            keyspace=settings.cassandra_keyspace,
            redis=redis_client,
        )
    logger.info("memory_store_initialized")
    return InMemoryCommentStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    # Initialize Redis (non-critical for the memory backend)
    redis_client = None
    if settings.redis_enabled or settings.storage_backend == "cassandra":
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - notifications disabled",
            )
    app_state.redis = redis_client

    store = await _init_store(redis_client)
    app_state.store = store

    matcher = init_default_matcher(
        include_defaults=settings.moderation_load_default_words
    )

    sink = None
    if redis_client is not None and settings.notifications_enabled:
        sink = RedisNotificationSink(redis_client)
    app_state.notifications = NotificationDispatcher(sink)
    logger.info("notifications_initialized", redis_enabled=sink is not None)

    app_state.score_engine = ScoreEngine(
        store,
        hot_list_size=settings.hot_list_size,
        batch_limit=settings.hot_sweep_batch_limit,
    )

    app_state.comment_service = CommentService(
        store=store,
        users=InMemoryUserDirectory(),
        ownership=InMemoryTargetOwnership(),
        pipeline=ModerationPipeline(
            matcher, short_length=settings.comment_short_length
        ),
        score_engine=app_state.score_engine,
        notifications=app_state.notifications,
        max_length=settings.comment_max_length,
        max_page_size=settings.comment_max_page_size,
    )
    logger.info("comment_service_initialized")

    app_state.report_engine = ReportFoldEngine(
        store,
        default_threshold=settings.report_fold_threshold,
        notifications=app_state.notifications,
    )
    logger.info("report_engine_initialized")

    app_state.word_service = SensitiveWordService(
        store,
        matcher=matcher,
        include_defaults=settings.moderation_load_default_words,
    )
    words = await app_state.word_service.reload()
    logger.info("word_service_initialized", words=words)

    # Also set on app.state for dependency injection via request.app.state
    app.state.comment_service = app_state.comment_service
    app.state.report_engine = app_state.report_engine
    app.state.word_service = app_state.word_service
    app.state.score_engine = app_state.score_engine

    if settings.hot_sweep_enabled:
        app_state.sweeper = HotRankingSweeper(store, app_state.score_engine)
        await app_state.sweeper.start(
            interval_seconds=settings.hot_sweep_interval_seconds
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if app_state.sweeper is not None:
        await app_state.sweeper.stop()
        app_state.sweeper = None
    await app_state.notifications.flush()
    await shutdown_redis()
    if settings.storage_backend == "cassandra":
        await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; handlers below log full details.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Motor de comentarios - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions."""
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(comments_admin_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Comment Engine API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
