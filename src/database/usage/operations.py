"""Database operations for the monthly reminder usage counter."""

from __future__ import annotations

import logging
import uuid as uuid_module
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from src.database.usage.models import ReminderUsage

logger = logging.getLogger(__name__)


def month_key_for(instant: datetime | None = None) -> str:
    """Return the calendar month key (YYYY-MM) of an instant in UTC.

    :param instant: The instant (defaults to now).
    :returns: Month key such as "2026-10".
    """
    if instant is None:
        instant = datetime.now(UTC)
    if instant.tzinfo is not None:
        instant = instant.astimezone(UTC)
    return instant.strftime("%Y-%m")


def get_usage(
    session: Session,
    user_id: uuid_module.UUID,
    month_key: str,
) -> int:
    """Get how many reminders a user has been sent in a month.

    :param session: Database session.
    :param user_id: User ID.
    :param month_key: Month key (YYYY-MM).
    :returns: The count, or 0 when no record exists yet.
    """
    record = (
        session.query(ReminderUsage)
        .filter(
            ReminderUsage.user_id == user_id,
            ReminderUsage.month_key == month_key,
        )
        .first()
    )
    return record.count if record is not None else 0


def increment_usage(
    session: Session,
    user_id: uuid_module.UUID,
    month_key: str,
    now: datetime | None = None,
) -> int:
    """Atomically add one to a user's monthly usage, creating the row if needed.

    Uses INSERT ... ON CONFLICT DO UPDATE so concurrent increments for the
    same (user, month) are serialised by the database.

    :param session: Database session.
    :param user_id: User ID.
    :param month_key: Month key (YYYY-MM).
    :param now: Current time (defaults to now).
    :returns: The new count.
    """
    if now is None:
        now = datetime.now(UTC)

    statement = insert(ReminderUsage).values(
        id=uuid_module.uuid4(),
        user_id=user_id,
        month_key=month_key,
        count=1,
        created_at=now,
        updated_at=now,
    )
    statement = statement.on_conflict_do_update(
        constraint="uq_reminder_usage_user_month",
        set_={
            "count": ReminderUsage.count + 1,
            "updated_at": now,
        },
    ).returning(ReminderUsage.count)

    new_count = session.execute(statement).scalar_one()
    session.flush()
    logger.info(
        f"Incremented reminder usage: user_id={user_id}, month={month_key}, count={new_count}"
    )
    return int(new_count)


def get_usage_history(
    session: Session,
    user_id: uuid_module.UUID,
    since_month_key: str,
) -> list[ReminderUsage]:
    """Get a user's usage records from a month onwards.

    :param session: Database session.
    :param user_id: User ID.
    :param since_month_key: Earliest month key to include (YYYY-MM).
    :returns: Usage records, newest month first.
    """
    return (
        session.query(ReminderUsage)
        .filter(
            ReminderUsage.user_id == user_id,
            ReminderUsage.month_key >= since_month_key,
        )
        .order_by(ReminderUsage.month_key.desc())
        .all()
    )
