"""Webhook delivery channel: posts reminders to an automation endpoint."""

import logging
from typing import Any

import requests

from src.notifications.base import NotificationGateway
from src.notifications.models import DispatchOutcome, DispatchPayload
from src.reminders.config import ReminderSettings, get_reminder_settings
from src.reminders.exceptions import DispatchError

logger = logging.getLogger(__name__)

# Default request timeout in seconds
DEFAULT_REQUEST_TIMEOUT = 10.0

# Payload type understood by the receiving workflow
REMINDER_PAYLOAD_TYPE = "reminder"

# Longest response body kept in an error message
ERROR_BODY_MAX_LENGTH = 200


def build_webhook_body(payload: DispatchPayload) -> dict[str, Any]:
    """Build the JSON document posted to the webhook.

    :param payload: The reminder to deliver.
    :returns: JSON-serialisable body.
    """
    return {
        "type": REMINDER_PAYLOAD_TYPE,
        "reminder": {
            "title": payload.title,
            "body": payload.body,
            "dueAt": payload.when_due_at.isoformat(),
            **payload.metadata,
        },
        "user": payload.recipient.model_dump(mode="json"),
    }


class WebhookGateway(NotificationGateway):
    """Delivers reminders by POSTing JSON to a webhook URL."""

    channel = "webhook"

    def __init__(
        self,
        *,
        url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the webhook gateway.

        :param url: Webhook endpoint.
        :param timeout: Request timeout in seconds.
        :param session: Optional requests session for connection reuse.
        :raises ValueError: If no URL is given.
        """
        if not url:
            raise ValueError("No webhook URL provided. Set REMINDER_WEBHOOK_URL.")
        self._url = url
        self._timeout = timeout
        self._http = session or requests.Session()

    def _post(self, body: dict[str, Any]) -> int:
        """POST a body and return the status code.

        :param body: JSON body.
        :returns: HTTP status code of a successful response.
        :raises DispatchError: If the request fails or returns non-2xx.
        """
        try:
            response = self._http.post(self._url, json=body, timeout=self._timeout)
        except requests.exceptions.Timeout as e:
            raise DispatchError(f"Webhook request timed out after {self._timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise DispatchError(f"Webhook request failed: {e}") from e

        if not response.ok:
            detail = response.text[:ERROR_BODY_MAX_LENGTH]
            raise DispatchError(
                f"Webhook returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response.status_code

    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        """Deliver a reminder to the webhook.

        Transport failures are reported in the outcome rather than raised.
        """
        item_id = payload.metadata.get("itemId")
        try:
            status_code = self._post(build_webhook_body(payload))
        except DispatchError as e:
            logger.error(f"Webhook dispatch failed: item_id={item_id}, error={e}")
            return DispatchOutcome(ok=False, status_code=e.status_code, error_message=str(e))

        logger.info(f"Webhook dispatch succeeded: item_id={item_id}, status={status_code}")
        return DispatchOutcome(ok=True, status_code=status_code)


class LoggingGateway(NotificationGateway):
    """Development channel that only logs reminders."""

    channel = "log"

    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        """Log the reminder and report success."""
        logger.info(
            f"Reminder for user_id={payload.recipient.user_id}: "
            f"{payload.title!r} due {payload.when_due_at.isoformat()}"
        )
        return DispatchOutcome(ok=True)


def build_gateway(settings: ReminderSettings | None = None) -> NotificationGateway:
    """Build the configured gateway.

    :param settings: Reminder settings (defaults to cached settings).
    :returns: A webhook gateway when a URL is configured, else a logging gateway.
    """
    if settings is None:
        settings = get_reminder_settings()

    if settings.webhook_url:
        return WebhookGateway(url=settings.webhook_url, timeout=settings.dispatch_timeout_seconds)

    logger.warning("REMINDER_WEBHOOK_URL not configured, reminders will only be logged")
    return LoggingGateway()
