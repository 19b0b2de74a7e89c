"""Pydantic models for the API response envelope."""

from pydantic import BaseModel, Field


class SuccessResponse[T](BaseModel):
    """Envelope wrapping every successful response."""

    success: bool = Field(True, description="Always true for successful responses")
    data: T = Field(..., description="Response payload")


class ErrorResponse(BaseModel):
    """Envelope wrapping every failed response."""

    success: bool = Field(False, description="Always false for failed responses")
    error: str = Field(..., description="Error description")
