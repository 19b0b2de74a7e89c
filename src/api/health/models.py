"""Pydantic models for the liveness endpoint."""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness status of the reminder service."""

    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="Application version")
    checked_at: datetime = Field(..., description="When the check ran")
