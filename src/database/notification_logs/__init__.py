"""Delivery log of reminders handed to a gateway."""

from src.database.notification_logs.models import DeliveryStatus, NotificationLog
from src.database.notification_logs.operations import (
    create_notification_log,
    list_failed_notifications,
)

__all__ = [
    "DeliveryStatus",
    "NotificationLog",
    "create_notification_log",
    "list_failed_notifications",
]
