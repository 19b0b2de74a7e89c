"""SQLAlchemy ORM models for the account data the reminder service reads.

Subscriptions and contact details are owned by the billing and profile
systems; this service only reads them.
"""

import uuid as uuid_module
from datetime import UTC, datetime, time
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Index, String, Time
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.core import Base


class SubscriptionStatus(StrEnum):
    """Status of a billing subscription."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class Subscription(Base):
    """ORM model for a user's billing subscription."""

    __tablename__ = "subscriptions"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    plan_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SubscriptionStatus.ACTIVE.value,
    )
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_subscriptions_user_status", "user_id", "status"),)

    def __repr__(self) -> str:
        """Return string representation of the subscription."""
        return (
            f"<Subscription(user_id={self.user_id}, plan={self.plan_type}, status={self.status})>"
        )


class UserContact(Base):
    """ORM model for the contact details used as a reminder recipient.

    Also carries the user's delivery preferences: a master switch for
    reminders and optional quiet hours in the user's own timezone.
    """

    __tablename__ = "user_contacts"

    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    reminders_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    quiet_hours_start: Mapped[time | None] = mapped_column(
        Time,
        nullable=True,
    )
    quiet_hours_end: Mapped[time | None] = mapped_column(
        Time,
        nullable=True,
    )
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="UTC",
    )


class ApiToken(Base):
    """ORM model mapping a hashed bearer token to a user."""

    __tablename__ = "api_tokens"

    token_hash: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_api_tokens_user_id", "user_id"),)
