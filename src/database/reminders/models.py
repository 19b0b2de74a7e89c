"""SQLAlchemy ORM models for reminder-eligible items.

Appointments and scheduled transactions share one table and one reminder
capability (due time, offsets, enabled flag, sent offsets). Matching and
scheduling code only ever sees that capability.
"""

import uuid as uuid_module
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.core import Base
from src.notifications.formatting import (
    format_appointment_reminder,
    format_transaction_reminder,
)
from src.notifications.models import NotificationContent

# Maximum length of title to show in repr
REPR_TITLE_MAX_LENGTH = 50


class ItemStatus(StrEnum):
    """Lifecycle status of a reminded item."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemType(StrEnum):
    """Discriminator for the concrete kinds of reminded items."""

    APPOINTMENT = "appointment"
    SCHEDULED_TRANSACTION = "scheduled_transaction"


class TransactionType(StrEnum):
    """Direction of a scheduled transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class ReminderItem(Base):
    """ORM model for any item with a due time and reminder configuration.

    ``reminder_offsets`` keeps the user's configured order. ``sent_offsets``
    is append-only and is only ever written through the conditional update
    in ``mark_offset_sent``, guarded by ``version``.
    """

    __tablename__ = "reminder_items"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    item_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    due_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    reminder_offsets: Mapped[list[int]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )
    reminder_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    sent_offsets: Mapped[list[int]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )
    reminder_sent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ItemStatus.PENDING.value,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __mapper_args__ = {
        "polymorphic_on": "item_type",
        "polymorphic_abstract": True,
    }

    __table_args__ = (
        Index("idx_reminder_items_due", "status", "reminder_enabled", "due_at"),
        Index("idx_reminder_items_user_id", "user_id"),
    )

    @property
    def offsets(self) -> list[int]:
        """Configured reminder offsets in minutes, in configured order."""
        return [int(offset) for offset in self.reminder_offsets or []]

    @property
    def sent_offset_set(self) -> frozenset[int]:
        """Offsets that have already been dispatched."""
        return frozenset(int(offset) for offset in self.sent_offsets or [])

    def build_notification(self, offset: int, minutes_until: int) -> NotificationContent:
        """Build the notification text for this item.

        :param offset: The matched reminder offset in minutes.
        :param minutes_until: Whole minutes until the item is due.
        :returns: Notification title and body.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        """Return string representation of the item."""
        title = self.title or ""
        if len(title) > REPR_TITLE_MAX_LENGTH:
            title = title[:REPR_TITLE_MAX_LENGTH] + "..."
        return (
            f"<{type(self).__name__}(id={self.id}, title={title!r}, "
            f"due_at={self.due_at}, status={self.status})>"
        )


class Appointment(ReminderItem):
    """An appointment the user wants to be reminded about."""

    location: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    category: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    __mapper_args__ = {"polymorphic_identity": ItemType.APPOINTMENT.value}

    def build_notification(self, offset: int, minutes_until: int) -> NotificationContent:
        """Build the appointment reminder text."""
        return format_appointment_reminder(
            title=self.title,
            due_at=self.due_at,
            minutes_until=minutes_until,
            description=self.description,
            location=self.location,
        )


class ScheduledTransaction(ReminderItem):
    """A future income or expense with a reminder."""

    amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    transaction_type: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    __mapper_args__ = {"polymorphic_identity": ItemType.SCHEDULED_TRANSACTION.value}

    def build_notification(self, offset: int, minutes_until: int) -> NotificationContent:
        """Build the scheduled transaction reminder text."""
        return format_transaction_reminder(
            description=self.description or self.title,
            amount=self.amount or Decimal("0"),
            transaction_type=self.transaction_type or TransactionType.EXPENSE.value,
            due_at=self.due_at,
            minutes_until=minutes_until,
        )
