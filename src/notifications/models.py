"""Pydantic models for reminder notifications and dispatch outcomes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationContent(BaseModel):
    """Formatted title and body for a single reminder."""

    title: str = Field(..., description="Short notification title")
    body: str = Field(..., description="Notification body text")


class Recipient(BaseModel):
    """Who a reminder is delivered to."""

    user_id: str = Field(..., description="Owning user ID")
    name: str = Field("", description="Display name")
    email: str = Field("", description="Email address")
    phone: str = Field("", description="Phone number for messaging channels")


class DispatchPayload(BaseModel):
    """Everything a gateway needs to deliver one reminder."""

    recipient: Recipient = Field(..., description="Who receives the reminder")
    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body")
    when_due_at: datetime = Field(..., description="When the reminded item is due")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Item identity, matched offset and delivery context",
    )


class DispatchOutcome(BaseModel):
    """Result reported by a gateway for one send attempt."""

    ok: bool = Field(..., description="Whether the channel accepted the message")
    status_code: int | None = Field(None, description="Transport status code, if any")
    error_message: str | None = Field(None, description="Failure description")
