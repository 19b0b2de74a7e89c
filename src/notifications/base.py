"""Base class for reminder delivery channels.

A gateway only formats and delivers; it never decides whether a reminder is
eligible or within quota.
"""

from abc import ABC, abstractmethod

from src.notifications.models import DispatchOutcome, DispatchPayload


class NotificationGateway(ABC):
    """Abstract delivery channel for reminder notifications."""

    # Channel name recorded in the delivery log
    channel: str = "generic"

    @abstractmethod
    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        """Deliver a reminder.

        :param payload: The reminder to deliver.
        :returns: Whether the channel accepted it, with status details.
        """
        ...
