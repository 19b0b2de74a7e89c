"""Liveness endpoint."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter

from src.api.health.models import HealthResponse
from src.api.models import SuccessResponse

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "",
    response_model=SuccessResponse[HealthResponse],
    summary="Check service liveness",
    description="Returns without touching the database or the dispatch gateway.",
)
def health_check() -> SuccessResponse[HealthResponse]:
    """Report that the API process is up.

    :returns: Health status response.
    """
    logger.debug("Health check requested")
    data = HealthResponse(status="healthy", version=APP_VERSION, checked_at=datetime.now(UTC))
    return SuccessResponse[HealthResponse](data=data)
