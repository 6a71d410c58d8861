"""FastAPI application for LeadHub."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadhub import __version__
from leadhub.config import Settings
from leadhub.exceptions import LeadHubError, NotFoundError, ValidationError
from leadhub.logging import configure_logging, get_logger
from leadhub.service import LeadHubService

from .router import router, set_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan.

    Initializes the LeadHubService on startup. On shutdown, pending
    webhook retries are cancelled and in-flight attempts are awaited
    before storage is closed.
    """
    settings: Settings = app.state.settings

    configure_logging(level=settings.log_level, format=settings.log_format)
    logger.info(
        "Starting LeadHub API", log_level=settings.log_level, log_format=settings.log_format
    )

    service = LeadHubService.create(settings)
    await service.initialize()
    set_service(service)

    yield

    logger.info("Stopping LeadHub API", pending_deliveries=service.dispatcher.pending_count)
    await service.close()
    set_service(None)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.

    Returns:
        Configured FastAPI application.

    Example:
        ```python
        from leadhub.api import create_app

        app = create_app()
        # Run with: uvicorn leadhub.api:app --reload
        ```
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="LeadHub",
        description="Lead capture and management with webhook delivery.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # CORS
    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            max_age=settings.cors_max_age,
        )

    _register_error_handlers(app)
    app.include_router(router, prefix="/api/v1")

    return app


# Most specific class first; LeadHubError catches the rest.
ERROR_STATUS: tuple[tuple[type[LeadHubError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (LeadHubError, 500),
)


def _error_status(exc: LeadHubError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def _register_error_handlers(app: FastAPI) -> None:
    """Map LeadHub errors and malformed requests to ``{"error": ...}`` bodies."""

    async def leadhub_error_handler(request: Request, exc: Exception) -> JSONResponse:
        assert isinstance(exc, LeadHubError)
        status = _error_status(exc)
        if status >= 500:
            logger.error("Request failed", code=exc.code, error=exc.message, path=request.url.path)
        else:
            logger.info("Request rejected", code=exc.code, status=status, path=request.url.path)
        return JSONResponse(status_code=status, content=exc.to_dict())

    async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
        assert isinstance(exc, RequestValidationError)
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or "body"
        error = ValidationError(field, first.get("msg", "Invalid request"))
        logger.info("Malformed request", field=field, path=request.url.path)
        return JSONResponse(status_code=400, content=error.to_dict())

    for error_type, _ in ERROR_STATUS:
        app.add_exception_handler(error_type, leadhub_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)


app = create_app()
