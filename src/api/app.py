"""FastAPI application configuration."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from src.api.health import router as health_router
from src.api.health.endpoints import APP_VERSION
from src.api.models import ErrorResponse
from src.api.reminders import router as reminders_router
from src.observability.sentry import init_sentry
from src.utils.logging import configure_logging

configure_logging()
init_sentry()

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    error: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render an HTTPException in the failure envelope."""
    return _error_response(exc.status_code, str(exc.detail), exc.headers)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render a request validation error in the failure envelope."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"Request validation failed: path={request.url.path}, error={message}")
    return _error_response(422, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an unexpected error in the failure envelope."""
    logger.exception(f"Unhandled error: path={request.url.path}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    :returns: Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Reminder Service API",
        version=APP_VERSION,
        responses={
            401: {"model": ErrorResponse, "description": "Unauthorised"},
            403: {"model": ErrorResponse, "description": "Forbidden"},
            500: {"model": ErrorResponse, "description": "Internal server error"},
        },
    )

    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    # Register routers
    application.include_router(health_router)
    application.include_router(reminders_router)

    logger.info("FastAPI application created")

    return application


# Application instance for uvicorn
app = create_app()
