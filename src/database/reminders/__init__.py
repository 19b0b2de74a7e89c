"""Database models and operations for reminder-eligible items."""

from src.database.reminders.models import (
    Appointment,
    ItemStatus,
    ItemType,
    ReminderItem,
    ScheduledTransaction,
    TransactionType,
)
from src.database.reminders.operations import (
    MarkResult,
    get_item_by_id,
    list_due_items,
    list_items_for_user,
    mark_offset_sent,
)

__all__ = [
    # Models
    "Appointment",
    "ItemStatus",
    "ItemType",
    "ReminderItem",
    "ScheduledTransaction",
    "TransactionType",
    # Operations
    "MarkResult",
    "get_item_by_id",
    "list_due_items",
    "list_items_for_user",
    "mark_offset_sent",
]
