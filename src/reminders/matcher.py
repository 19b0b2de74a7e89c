"""Window matching: which reminder offset of an item is due right now.

Both the server sweep and the client scheduler work on anything that
satisfies ``Reminderable``; appointments and scheduled transactions are
two implementations of it.
"""

import logging
import math
from collections.abc import Collection, Sequence
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from src.notifications.models import NotificationContent

logger = logging.getLogger(__name__)

# Offset used when an item has no offsets configured (in minutes)
DEFAULT_REMINDER_OFFSET_MINUTES = 15

# Width of the firing window below each offset (in minutes)
DEFAULT_TOLERANCE_MINUTES = 5

PENDING_STATUS = "pending"


@runtime_checkable
class Reminderable(Protocol):
    """The reminder capability shared by every kind of reminded item."""

    id: Any
    due_at: datetime
    reminder_enabled: bool
    status: str

    @property
    def offsets(self) -> Sequence[int]:
        """Configured offsets in minutes, in configured order."""
        ...

    @property
    def sent_offset_set(self) -> Collection[int]:
        """Offsets already dispatched."""
        ...

    def build_notification(self, offset: int, minutes_until: int) -> NotificationContent:
        """Build the notification text for a matched offset."""
        ...


def effective_offsets(item: Reminderable) -> list[int]:
    """Return an item's offsets, falling back to the default when none are set.

    :param item: The reminded item.
    :returns: Offsets in configured order.
    """
    offsets = list(item.offsets)
    return offsets or [DEFAULT_REMINDER_OFFSET_MINUTES]


def is_eligible(item: Reminderable) -> bool:
    """Whether an item takes part in reminding at all.

    :param item: The reminded item.
    :returns: True when reminders are enabled and the item is still pending.
    """
    return bool(item.reminder_enabled) and item.status == PENDING_STATUS


def minutes_until_due(due_at: datetime, now: datetime) -> int:
    """Whole minutes from now until the due time, rounded down.

    :param due_at: Due instant.
    :param now: Current instant.
    :returns: floor((due_at - now) / 1 minute); negative once overdue.
    """
    return math.floor((due_at - now) / timedelta(minutes=1))


def offset_in_window(offset: int, minutes_until: int, tolerance: int) -> bool:
    """Whether ``minutes_until`` falls in ``[offset - tolerance, offset]``."""
    return offset - tolerance <= minutes_until <= offset


def find_due_offset(
    item: Reminderable,
    now: datetime,
    tolerance: int = DEFAULT_TOLERANCE_MINUTES,
) -> int | None:
    """Find the offset of an item that should fire now.

    Offsets are checked in configured order and the first one in window and
    not yet sent wins, so at most one reminder per item is produced per call
    even when several offsets overlap.

    :param item: The reminded item.
    :param now: Current instant.
    :param tolerance: Window width in minutes.
    :returns: The matched offset, or None.
    """
    if not is_eligible(item):
        return None

    if item.due_at < now:
        logger.debug(f"Item {item.id} is past due, skipping")
        return None

    minutes_until = minutes_until_due(item.due_at, now)
    sent = item.sent_offset_set

    for offset in effective_offsets(item):
        if offset in sent:
            continue
        if offset_in_window(offset, minutes_until, tolerance):
            logger.debug(f"Item {item.id} matched offset {offset} ({minutes_until} min until due)")
            return offset

    return None
