"""Database models and operations for monthly reminder usage."""

from src.database.usage.models import ReminderUsage
from src.database.usage.operations import (
    get_usage,
    get_usage_history,
    increment_usage,
    month_key_for,
)

__all__ = [
    "ReminderUsage",
    "get_usage",
    "get_usage_history",
    "increment_usage",
    "month_key_for",
]
