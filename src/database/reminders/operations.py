"""Database operations for reminder-eligible items."""

from __future__ import annotations

import logging
import uuid as uuid_module
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from src.database.reminders.models import ItemStatus, ReminderItem

logger = logging.getLogger(__name__)

# Default lookahead for the sweep query (in hours)
DEFAULT_LOOKAHEAD_HOURS = 24

# Attempts at the conditional update before giving up on a contended row
MAX_MARK_ATTEMPTS = 3


class MarkResult(StrEnum):
    """Outcome of a conditional sent-marking."""

    SENT = "sent"
    ALREADY_SENT = "already_sent"


def get_item_by_id(
    session: Session,
    item_id: uuid_module.UUID,
) -> ReminderItem | None:
    """Get a reminder item by ID.

    :param session: Database session.
    :param item_id: Item ID.
    :returns: The item or None if not found.
    """
    return session.query(ReminderItem).filter(ReminderItem.id == item_id).first()


def list_due_items(
    session: Session,
    now: datetime | None = None,
    lookahead: timedelta = timedelta(hours=DEFAULT_LOOKAHEAD_HOURS),
) -> list[ReminderItem]:
    """List pending, reminder-enabled items due within the lookahead window.

    Items already past due are excluded; they are never reminded retroactively.

    :param session: Database session.
    :param now: Current time (defaults to now).
    :param lookahead: How far ahead of now to look.
    :returns: Items ordered by due time, soonest first.
    """
    if now is None:
        now = datetime.now(UTC)

    return (
        session.query(ReminderItem)
        .filter(
            ReminderItem.status == ItemStatus.PENDING.value,
            ReminderItem.reminder_enabled.is_(True),
            ReminderItem.due_at >= now,
            ReminderItem.due_at <= now + lookahead,
        )
        .order_by(ReminderItem.due_at.asc())
        .all()
    )


def list_items_for_user(
    session: Session,
    user_id: uuid_module.UUID,
    include_resolved: bool = False,
    limit: int = 200,
) -> list[ReminderItem]:
    """List a user's reminded items, used to feed a client-side scheduler.

    :param session: Database session.
    :param user_id: Owning user ID.
    :param include_resolved: Whether to include completed and cancelled items.
    :param limit: Maximum number of items to return.
    :returns: Items ordered by due time.
    """
    query = session.query(ReminderItem).filter(ReminderItem.user_id == user_id)

    if not include_resolved:
        query = query.filter(ReminderItem.status == ItemStatus.PENDING.value)

    return query.order_by(ReminderItem.due_at.asc()).limit(limit).all()


def mark_offset_sent(
    session: Session,
    item: ReminderItem,
    offset: int,
    now: datetime | None = None,
) -> MarkResult:
    """Atomically record that an offset has been dispatched for an item.

    The write is a compare-and-set on ``version``: it only lands if nobody
    else has changed the row since it was read. When the row moved on, it is
    re-read and the check repeated, so a concurrent sweep that marked a
    different offset does not block this one, while a sweep that marked the
    same offset wins and this call reports ALREADY_SENT.

    :param session: Database session.
    :param item: The item being marked (its in-memory state is refreshed).
    :param offset: The matched offset in minutes.
    :param now: Current time (defaults to now).
    :returns: SENT if this call recorded the offset, ALREADY_SENT otherwise.
    """
    if now is None:
        now = datetime.now(UTC)

    for _ in range(MAX_MARK_ATTEMPTS):
        if offset in item.sent_offset_set:
            logger.debug(f"Offset already marked: item_id={item.id}, offset={offset}")
            return MarkResult.ALREADY_SENT

        expected_version = item.version or 0
        new_sent = [*(item.sent_offsets or []), offset]
        updated = (
            session.query(ReminderItem)
            .filter(
                ReminderItem.id == item.id,
                ReminderItem.version == expected_version,
            )
            .update(
                {
                    ReminderItem.sent_offsets: new_sent,
                    ReminderItem.reminder_sent: True,
                    ReminderItem.version: expected_version + 1,
                    ReminderItem.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        session.flush()

        if updated == 1:
            set_committed_value(item, "sent_offsets", new_sent)
            set_committed_value(item, "reminder_sent", True)
            set_committed_value(item, "version", expected_version + 1)
            logger.info(f"Marked offset sent: item_id={item.id}, offset={offset}")
            return MarkResult.SENT

        logger.debug(f"Version conflict marking item_id={item.id}, re-reading")
        session.refresh(item)

    logger.warning(f"Gave up marking contended item: item_id={item.id}, offset={offset}")
    return MarkResult.ALREADY_SENT
