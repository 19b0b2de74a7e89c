"""Pydantic models for reminder quota and sweep endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.reminders.sweep import SweepReason


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuotaInsights(CamelModel):
    """Upgrade and warning signals derived from usage."""

    is_near_limit: bool = Field(..., description="Usage has reached 80% of the limit")
    should_upgrade: bool = Field(..., description="A lowest-tier user has reached 90%")


class CurrentMonthUsage(CamelModel):
    """Usage block for the current month."""

    usage: int = Field(..., description="Reminders dispatched this month")
    limit: int = Field(..., description="Monthly reminder limit")
    remaining: int = Field(..., description="Reminders left this month")
    usage_percentage: int = Field(..., description="Usage as a whole percentage of the limit")
    can_create_reminder: bool = Field(..., description="Whether another reminder may be sent")


class QuotaResponse(CurrentMonthUsage):
    """Current-month quota for the authenticated user."""

    plan_type: str = Field(..., description="Billing plan type")
    insights: QuotaInsights


class MonthlyUsageEntry(CamelModel):
    """Usage of one past or current month."""

    month_key: str = Field(..., description="Month key (YYYY-MM)")
    used: int = Field(..., description="Reminders dispatched")
    limit: int = Field(..., description="Monthly limit at the time of the request")


class UsageStatsResponse(CamelModel):
    """Usage statistics for the authenticated user."""

    current_month: CurrentMonthUsage
    monthly_breakdown: list[MonthlyUsageEntry] = Field(
        ...,
        description="Usage per month, oldest first, current month last",
    )
    average_monthly_usage: int = Field(..., description="Rounded mean over the breakdown")
    max_monthly_usage: int = Field(..., description="Highest month in the breakdown")
    plan_type: str = Field(..., description="Billing plan type")
    insights: QuotaInsights


class SweepItemResponse(CamelModel):
    """Outcome for one matched item in a sweep."""

    item_id: str = Field(..., description="Reminded item ID")
    offset: int = Field(..., description="Matched offset in minutes")
    success: bool = Field(..., description="Whether the reminder was delivered")
    reason: SweepReason = Field(..., description="Outcome reason code")
    error: str | None = Field(None, description="Failure description")
    status_code: int | None = Field(None, description="Gateway status code, if any")


class SweepResponse(CamelModel):
    """Summary of a triggered sweep."""

    checked: int = Field(..., description="Items inspected")
    sent: int = Field(..., description="Reminders delivered successfully")
    results: list[SweepItemResponse] = Field(..., description="One entry per matched item")
    timestamp: datetime = Field(..., description="Instant the sweep evaluated windows against")


class ReminderItemResponse(CamelModel):
    """A reminded item as a client-side scheduler needs it."""

    id: UUID = Field(..., description="Item ID")
    item_type: str = Field(..., description="Item kind (appointment, scheduled_transaction)")
    title: str = Field(..., description="Item title")
    due_at: datetime = Field(..., description="When the item is due")
    reminder_offsets: list[int] = Field(
        ...,
        description="Effective reminder offsets in minutes, defaults applied",
    )
    sent_offsets: list[int] = Field(..., description="Offsets already dispatched server-side")
    reminder_enabled: bool = Field(..., description="Whether reminders are on for the item")
    status: str = Field(..., description="Item status")


class ReminderItemListResponse(CamelModel):
    """A user's reminded items."""

    results: list[ReminderItemResponse] = Field(
        default_factory=list,
        description="Items ordered by due time",
    )


class FailedDeliveryResponse(CamelModel):
    """A delivery attempt the gateway did not accept."""

    id: UUID = Field(..., description="Notification log entry ID")
    user_id: UUID = Field(..., description="Owning user ID")
    item_id: UUID = Field(..., description="Reminded item ID")
    channel: str = Field(..., description="Gateway channel")
    reminder_time_minutes: int = Field(..., description="Matched offset in minutes")
    recipient: str | None = Field(None, description="Address or number the reminder went to")
    message_content: str = Field(..., description="Body handed to the gateway")
    error_message: str | None = Field(None, description="Failure description")
    status_code: int | None = Field(None, description="Gateway status code, if any")
    created_at: datetime = Field(..., description="When the attempt was made")


class FailedDeliveryListResponse(CamelModel):
    """Failed delivery attempts, newest first."""

    results: list[FailedDeliveryResponse] = Field(default_factory=list)
