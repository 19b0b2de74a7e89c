"""SQLAlchemy ORM models for reminder delivery logs."""

import uuid as uuid_module
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.core import Base

# Maximum length of message to show in repr
REPR_MESSAGE_MAX_LENGTH = 50


class DeliveryStatus(StrEnum):
    """Outcome of one delivery attempt."""

    SENT = "sent"
    FAILED = "failed"


class NotificationLog(Base):
    """ORM model recording every reminder the sweep handed to a gateway.

    One row is written per delivery attempt, successful or not, so failed
    deliveries can be found and resent by hand.
    """

    __tablename__ = "notification_logs"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    item_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    channel: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        String(20),
        nullable=False,
    )
    reminder_time_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    recipient: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    message_content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    status_code: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_notification_logs_status_created", "status", "created_at"),
        Index("idx_notification_logs_item_id", "item_id"),
    )

    def __repr__(self) -> str:
        """Return string representation of the log entry."""
        if len(self.message_content) > REPR_MESSAGE_MAX_LENGTH:
            preview = self.message_content[:REPR_MESSAGE_MAX_LENGTH] + "..."
        else:
            preview = self.message_content
        return (
            f"NotificationLog(item_id={self.item_id}, offset={self.reminder_time_minutes}, "
            f"status={self.status}, message={preview!r})"
        )
