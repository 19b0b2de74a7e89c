"""Human-readable reminder text for each kind of reminded item."""

from datetime import datetime
from decimal import Decimal

import humanize

from src.notifications.models import NotificationContent

# Longest description included in a notification body
DESCRIPTION_MAX_LENGTH = 200

MINUTES_PER_HOUR = 60


def format_due_time(due_at: datetime) -> str:
    """Format a due instant like "19th Oct 2026 at 2:30 PM".

    :param due_at: The due instant.
    :returns: Human-readable date and time.
    """
    hour = due_at.hour % 12 or 12
    return (
        f"{humanize.ordinal(due_at.day)} {due_at.strftime('%b %Y')} "
        f"at {hour}:{due_at.strftime('%M %p')}"
    )


def format_lead_time(minutes_until: int) -> str:
    """Describe how far away the due time is.

    :param minutes_until: Whole minutes until the item is due.
    :returns: Text like "now", "in 15 minutes" or "in 2 hours".
    """
    if minutes_until <= 0:
        return "now"
    if minutes_until < MINUTES_PER_HOUR or minutes_until % MINUTES_PER_HOUR:
        unit = "minute" if minutes_until == 1 else "minutes"
        return f"in {minutes_until} {unit}"
    hours = minutes_until // MINUTES_PER_HOUR
    unit = "hour" if hours == 1 else "hours"
    return f"in {hours} {unit}"


def _truncate(text: str) -> str:
    if len(text) <= DESCRIPTION_MAX_LENGTH:
        return text
    return text[:DESCRIPTION_MAX_LENGTH].rstrip() + "..."


def format_appointment_reminder(
    *,
    title: str,
    due_at: datetime,
    minutes_until: int,
    description: str | None = None,
    location: str | None = None,
) -> NotificationContent:
    """Build the reminder text for an appointment.

    :param title: Appointment title.
    :param due_at: When the appointment starts.
    :param minutes_until: Whole minutes until the appointment.
    :param description: Optional appointment notes.
    :param location: Optional location.
    :returns: Notification title and body.
    """
    lines = [
        f"{title or 'Appointment'} starts {format_lead_time(minutes_until)}.",
        f"When: {format_due_time(due_at)}",
    ]
    if location:
        lines.append(f"Where: {location}")
    if description:
        lines.append(_truncate(description))

    return NotificationContent(title=f"Reminder: {title or 'Appointment'}", body="\n".join(lines))


def format_transaction_reminder(
    *,
    description: str | None,
    amount: Decimal,
    transaction_type: str,
    due_at: datetime,
    minutes_until: int,
) -> NotificationContent:
    """Build the reminder text for a scheduled income or expense.

    :param description: Transaction description.
    :param amount: Transaction amount.
    :param transaction_type: "income" or "expense".
    :param due_at: Scheduled date of the transaction.
    :param minutes_until: Whole minutes until the transaction is due.
    :returns: Notification title and body.
    """
    label = "Income" if transaction_type == "income" else "Expense"
    name = description or "Scheduled transaction"
    body = (
        f"{label} of {amount:,.2f} for {name!r} is due {format_lead_time(minutes_until)}.\n"
        f"When: {format_due_time(due_at)}"
    )
    return NotificationContent(title=f"{label} reminder", body=body)
