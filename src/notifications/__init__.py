"""Reminder delivery channels, payloads and formatting."""

from src.notifications.base import NotificationGateway
from src.notifications.models import (
    DispatchOutcome,
    DispatchPayload,
    NotificationContent,
    Recipient,
)
from src.notifications.webhook import LoggingGateway, WebhookGateway, build_gateway

__all__ = [
    "DispatchOutcome",
    "DispatchPayload",
    "LoggingGateway",
    "NotificationContent",
    "NotificationGateway",
    "Recipient",
    "WebhookGateway",
    "build_gateway",
]
