"""SQLAlchemy ORM models for monthly reminder usage."""

import uuid as uuid_module
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.core import Base


class ReminderUsage(Base):
    """ORM model counting dispatched reminders per user per calendar month.

    Rows are created lazily on the first successful dispatch of a month and
    the count only ever grows.
    """

    __tablename__ = "reminder_usage"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    month_key: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
    )
    count: Mapped[int] = mapped_column(
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

    __table_args__ = (
        UniqueConstraint("user_id", "month_key", name="uq_reminder_usage_user_month"),
    )

    def __repr__(self) -> str:
        """Return string representation of the usage record."""
        return (
            f"<ReminderUsage(user_id={self.user_id}, month={self.month_key}, count={self.count})>"
        )
