"""AulaFlow API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.certificates.client import RemoteCompletionChecker
from src.certificates.router import router as certificates_router
from src.certificates.schemas import CompletionChecker
from src.certificates.service import CertificateService
from src.certificates.trigger import CertificateTrigger
from src.config import Settings, get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.events import EventBus
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.drip.directory import CassandraCourseDirectory
from src.drip.router import router as drip_router
from src.email.service import EmailService
from src.health import router as health_router
from src.notifications.service import NotificationService, get_connection_manager
from src.notifications.websocket_router import router as notifications_ws_router
from src.progress.router import router as progress_router
from src.progress.router import unlock_router
from src.progress.router import ws_router as playback_ws_router
from src.progress.store import CassandraProgressStore
from src.progress.unlock import RedisFlagStore


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for lifecycle management
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    email_service: EmailService | None = None
    certificate_trigger: CertificateTrigger | None = None


app_state = AppState()


def build_completion_checker(
    settings: Settings,
    certificate_service: CertificateService | None,
) -> CompletionChecker | None:
    """Remote checker when a URL is configured, local service otherwise."""
    if settings.remote_certificate_check:
        return RemoteCompletionChecker(
            url=settings.certificate_check_url,
            timeout=settings.certificate_check_timeout_seconds,
            api_key=settings.certificate_check_api_key,
        )
    return certificate_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        app.state.flag_store = RedisFlagStore(redis_client)
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - notification relay and unlock disabled",
        )

    notification_service = NotificationService(
        manager=get_connection_manager(),
        redis=redis_client,
    )
    app.state.notification_service = notification_service
    logger.info(
        "notification_service_initialized", redis_enabled=redis_client is not None
    )

    # Initialize Email Service (certificate congratulations)
    if settings.email_configured:
        app_state.email_service = EmailService(
            credentials_path=settings.email_credentials_path,
            sender_address=settings.email_sender_address,
            sender_name=settings.email_sender_name,
            certificates_url=settings.certificates_page_url,
        )
        logger.info("email_service_initialized", sender=settings.email_sender_address)

    # Initialize Cassandra (async)
    certificate_service = None
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        progress_store = CassandraProgressStore(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        app.state.progress_store = progress_store

        course_directory = CassandraCourseDirectory(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        app.state.course_directory = course_directory

        certificate_service = CertificateService(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
            directory=course_directory,
            progress_store=progress_store,
            email_sender=app_state.email_service,
        )
        app.state.certificate_service = certificate_service
        logger.info("progress_services_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    checker = build_completion_checker(settings, certificate_service)
    if checker is not None:
        app_state.certificate_trigger = CertificateTrigger(
            checker, notification_service
        )
        app_state.certificate_trigger.register(app.state.event_bus)
        logger.info(
            "certificate_trigger_registered",
            remote=settings.remote_certificate_check,
        )
    else:
        logger.warning("certificate_trigger_disabled")

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if app_state.certificate_trigger is not None:
        app_state.certificate_trigger.unregister(app.state.event_bus)
        app_state.certificate_trigger = None
    await shutdown_redis()
    await shutdown_async_cassandra()


# ==============================================================================
# Error Responses
# ==============================================================================


def _error_body(
    request: Request, status_code: int, message: str, **extra: Any
) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return {
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": request_id,
        **extra,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that log details and return safe messages.

    Stack traces and internal errors are logged, never sent to clients.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
        )
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Erro interno do servidor"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = exc.errors()
        logger.warning("validation_error", errors=errors, path=request.url.path)
        details = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Valor invalido"),
            }
            for err in errors
        ]
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                request,
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "Dados invalidos",
                details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Erro inesperado. Tente novamente mais tarde.",
            ),
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Plataforma de Cursos - API de Engajamento",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Playback sessions publish here; subscribers attach in lifespan
    app.state.event_bus = EventBus()

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

    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(progress_router)
    app.include_router(unlock_router)
    app.include_router(playback_ws_router)
    app.include_router(drip_router)
    app.include_router(certificates_router)
    app.include_router(notifications_ws_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "AulaFlow API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
