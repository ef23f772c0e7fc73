"""FastAPI application factory and dependency injection setup."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from rate_ledger.api.routes import currency_router, health_router
from rate_ledger.config import get_settings
from rate_ledger.container import get_container, reset_container
from rate_ledger.exceptions import RateLedgerError
from rate_ledger.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize logging and the store on startup, release them on shutdown."""
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    if not app.state.skip_store_init:
        _ = get_container().rate_store  # Force database initialization

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    reset_container()
    logger.info("application_stopped")


async def log_request_middleware(request: Request, call_next):
    """Middleware to add request context to logs."""
    request_id = str(uuid.uuid4())[:8]
    bind_context(request_id=request_id, path=request.url.path, method=request.method)

    try:
        response = await call_next(request)
        logger.debug(
            "request_completed",
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


async def exception_handler(request: Request, exc: RateLedgerError) -> PlainTextResponse:
    """Render ledger errors as a plain-text message with the error code in a header."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_exception",
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return PlainTextResponse(
        exc.message,
        status_code=exc.status_code,
        headers={"X-Error-Code": exc.error_code},
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        # Drop the "body"/"query" prefix so the message names the field.
        location = [str(p) for p in error.get("loc", ())[1:]]
        field = ".".join(location) or "request"
        parts.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> PlainTextResponse:
    """Render request validation failures like ledger validation errors."""
    message = _describe_validation_errors(exc)
    logger.warning("request_validation_failed", message=message)
    return PlainTextResponse(
        message,
        status_code=status.HTTP_400_BAD_REQUEST,
        headers={"X-Error-Code": "VALIDATION_ERROR"},
    )


def create_app(*, initialize_store: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        initialize_store: Open the configured store on startup. Tests that
            override the service dependency pass False.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Exchange-rate ledger: current rate and audit history per currency pair",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.skip_store_init = not initialize_store

    # Add middleware
    app.middleware("http")(log_request_middleware)

    # Add exception handlers
    app.add_exception_handler(RateLedgerError, exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(currency_router)

    return app


# Create app instance for uvicorn
app = create_app()
