"""Custom exceptions for reminder matching and dispatch."""


class ReminderError(Exception):
    """Base exception for reminder-related errors."""


class SourceQueryError(ReminderError):
    """Raised when the due-item listing cannot be fetched; aborts a sweep."""


class DispatchError(ReminderError):
    """Raised by a gateway when a message cannot be handed to its channel."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialise DispatchError.

        :param message: Failure description.
        :param status_code: Transport status code, if one was received.
        """
        self.status_code = status_code
        super().__init__(message)


class SchedulerClosedError(ReminderError):
    """Raised when a torn-down client scheduler is asked to schedule again."""
