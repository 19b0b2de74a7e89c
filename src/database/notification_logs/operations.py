"""Database operations for reminder delivery logs."""

from __future__ import annotations

import logging
import uuid as uuid_module
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from src.database.notification_logs.models import DeliveryStatus, NotificationLog

logger = logging.getLogger(__name__)

# How far back failed deliveries are listed by default (in hours)
DEFAULT_FAILED_LOOKBACK_HOURS = 24


def create_notification_log(  # noqa: PLR0913
    session: Session,
    *,
    user_id: uuid_module.UUID,
    item_id: uuid_module.UUID,
    channel: str,
    reminder_time_minutes: int,
    message_content: str,
    delivered: bool,
    recipient: str | None = None,
    error_message: str | None = None,
    status_code: int | None = None,
    details: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> NotificationLog:
    """Record one delivery attempt.

    :param session: Database session.
    :param user_id: Owning user ID.
    :param item_id: Reminded item ID.
    :param channel: Gateway channel name.
    :param reminder_time_minutes: Matched offset in minutes.
    :param message_content: Body handed to the gateway.
    :param delivered: Whether the gateway accepted the reminder.
    :param recipient: Address or number the reminder went to, if known.
    :param error_message: Failure description for a failed attempt.
    :param status_code: Gateway status code, if any.
    :param details: Extra delivery context (item type, minutes until due).
    :param now: Time of the attempt (defaults to now).
    :returns: The created log entry.
    """
    if now is None:
        now = datetime.now(UTC)

    entry = NotificationLog(
        user_id=user_id,
        item_id=item_id,
        channel=channel,
        status=DeliveryStatus.SENT if delivered else DeliveryStatus.FAILED,
        reminder_time_minutes=reminder_time_minutes,
        recipient=recipient or None,
        message_content=message_content,
        error_message=error_message,
        status_code=status_code,
        details=details or {},
        sent_at=now if delivered else None,
        created_at=now,
    )
    session.add(entry)
    session.flush()
    logger.debug(
        f"Created notification log: item_id={item_id}, offset={reminder_time_minutes}, "
        f"status={entry.status}"
    )
    return entry


def list_failed_notifications(
    session: Session,
    since: datetime | None = None,
    limit: int = 100,
) -> list[NotificationLog]:
    """List failed delivery attempts, newest first.

    :param session: Database session.
    :param since: Only include attempts at or after this time (defaults to
        the last 24 hours).
    :param limit: Maximum number of entries to return.
    :returns: Failed log entries.
    """
    if since is None:
        since = datetime.now(UTC) - timedelta(hours=DEFAULT_FAILED_LOOKBACK_HOURS)

    return (
        session.query(NotificationLog)
        .filter(
            NotificationLog.status == DeliveryStatus.FAILED.value,
            NotificationLog.created_at >= since,
        )
        .order_by(NotificationLog.created_at.desc())
        .limit(limit)
        .all()
    )
