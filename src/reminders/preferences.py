"""Per-user delivery preferences: reminder switch and quiet hours."""

import logging
from datetime import UTC, datetime, time, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class DeliveryPreferences(Protocol):
    """The contact fields that decide whether a reminder may go out now."""

    reminders_enabled: bool
    quiet_hours_start: time | None
    quiet_hours_end: time | None
    timezone: str


def is_in_quiet_hours(local_time: time, start: time | None, end: time | None) -> bool:
    """Whether a wall-clock time falls inside a quiet-hours range.

    The range includes its start and excludes its end. A start later than
    the end wraps past midnight (22:00 to 07:00). Equal or missing bounds
    mean no quiet hours.

    :param local_time: Wall-clock time in the user's timezone.
    :param start: Start of quiet hours.
    :param end: End of quiet hours.
    :returns: True if reminders should be held back.
    """
    if start is None or end is None or start == end:
        return False

    current = local_time.replace(second=0, microsecond=0, tzinfo=None)
    if start < end:
        return start <= current < end
    return current >= start or current < end


def _local_time(now: datetime, timezone: str) -> time:
    zone: tzinfo = UTC
    if timezone and timezone != "UTC":
        try:
            zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {timezone!r}, using UTC for quiet hours")
    return now.astimezone(zone).time()


def delivery_block_reason(preferences: DeliveryPreferences | None, now: datetime) -> str | None:
    """Explain why a user's preferences hold a reminder back, if they do.

    Users without stored preferences receive reminders.

    :param preferences: The user's contact preferences, or None.
    :param now: Current time, timezone-aware.
    :returns: A description of the block, or None if delivery may proceed.
    """
    if preferences is None:
        return None

    if not preferences.reminders_enabled:
        return "Reminders disabled by user"

    start, end = preferences.quiet_hours_start, preferences.quiet_hours_end
    if is_in_quiet_hours(_local_time(now, preferences.timezone), start, end):
        return f"Quiet hours ({start:%H:%M}-{end:%H:%M} {preferences.timezone})"

    return None
