"""Server-side reminder sweep.

Each run lists the pending, reminder-enabled items due within the lookahead
window, picks at most one in-window offset per item, checks the owner's
delivery preferences, marks the offset sent, checks the owner's quota and
hands the reminder to the gateway. Every delivery attempt is written to the
notification log.

Marking happens (and is committed) before sending. A reminder whose delivery
fails is therefore not retried by a later sweep: duplicates are ruled out at
the price of a possible silent loss, which is surfaced per item in the
summary, kept as a failed notification log entry and logged at ERROR for
monitoring.

A gateway call that exceeds the dispatch timeout is abandoned, not killed.
Its worker may still deliver the reminder afterwards, in which case the
item is reported and logged as failed and the delivery is never counted
against the user's quota.
"""

import concurrent.futures
import logging
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.database.accounts import UserContact, get_user_contact
from src.database.connection import get_session
from src.database.notification_logs import create_notification_log
from src.database.reminders import MarkResult, ReminderItem, list_due_items, mark_offset_sent
from src.database.usage import increment_usage, month_key_for
from src.notifications.base import NotificationGateway
from src.notifications.models import DispatchOutcome, DispatchPayload, Recipient
from src.notifications.webhook import build_gateway
from src.reminders.config import ReminderSettings, get_reminder_settings
from src.reminders.exceptions import SourceQueryError
from src.reminders.matcher import find_due_offset, minutes_until_due
from src.reminders.preferences import delivery_block_reason
from src.reminders.quota import QuotaEngine

logger = logging.getLogger(__name__)


class SweepReason(StrEnum):
    """Why a matched reminder ended the way it did."""

    SENT = "sent"
    SUPPRESSED = "suppressed"
    QUOTA_EXCEEDED = "quota_exceeded"
    ALREADY_SENT = "already_sent"
    MARK_FAILED = "mark_failed"
    STORE_FAILED = "store_failed"
    DISPATCH_FAILED = "dispatch_failed"
    UNEXPECTED_ERROR = "unexpected_error"


class ItemResult(BaseModel):
    """Outcome for one matched item in a sweep."""

    item_id: str = Field(..., description="Reminded item ID")
    offset: int = Field(..., description="Matched offset in minutes")
    success: bool = Field(..., description="Whether the reminder was delivered")
    reason: SweepReason = Field(..., description="Outcome reason code")
    error: str | None = Field(None, description="Failure description")
    status_code: int | None = Field(None, description="Gateway status code, if any")


class SweepSummary(BaseModel):
    """Summary of one sweep run."""

    checked: int = Field(default=0, description="Items inspected")
    sent: int = Field(default=0, description="Reminders delivered successfully")
    results: list[ItemResult] = Field(
        default_factory=list,
        description="One entry per matched item",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Instant the sweep evaluated windows against",
    )

    @property
    def failures(self) -> list[ItemResult]:
        """Matched items that were not delivered."""
        return [result for result in self.results if not result.success]


class ReminderSweep:
    """Runs one sweep over the due items using a single session."""

    def __init__(
        self,
        session: Session,
        gateway: NotificationGateway,
        quota_engine: QuotaEngine | None = None,
        settings: ReminderSettings | None = None,
    ) -> None:
        """Initialise the sweep.

        :param session: Database session; marks are committed per item.
        :param gateway: Channel that delivers reminders.
        :param quota_engine: Quota engine (defaults to one on the same session).
        :param settings: Reminder settings (defaults to cached settings).
        """
        self._session = session
        self._gateway = gateway
        self._settings = settings or get_reminder_settings()
        self._quota = quota_engine or QuotaEngine(session, self._settings)

    def run(self, now: datetime | None = None) -> SweepSummary:
        """Run the sweep.

        :param now: Instant to evaluate windows against (defaults to now).
        :returns: Summary with one result per matched item.
        :raises SourceQueryError: If the due items cannot be listed.
        """
        if now is None:
            now = datetime.now(UTC)

        logger.info(f"Starting reminder sweep at {now.isoformat()}")
        lookahead = timedelta(hours=self._settings.lookahead_hours)

        try:
            items = list_due_items(self._session, now, lookahead)
        except SQLAlchemyError as e:
            logger.exception("Failed to list due reminder items")
            raise SourceQueryError(f"Failed to list due items: {e}") from e

        summary = SweepSummary(checked=len(items), timestamp=now)
        logger.info(f"Found {len(items)} items due within {self._settings.lookahead_hours}h")

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._settings.dispatch_workers,
            thread_name_prefix="reminder-dispatch",
        )
        try:
            for item in items:
                offset = find_due_offset(item, now, self._settings.tolerance_minutes)
                if offset is None:
                    continue

                try:
                    result = self._process_item(item, offset, now, executor)
                except Exception as e:
                    logger.exception(f"Unexpected failure processing item {item.id}")
                    self._session.rollback()
                    result = ItemResult(
                        item_id=str(item.id),
                        offset=offset,
                        success=False,
                        reason=SweepReason.UNEXPECTED_ERROR,
                        error=str(e),
                    )

                summary.results.append(result)
                if result.success:
                    summary.sent += 1
        finally:
            # Hung gateway calls are abandoned rather than awaited
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            f"Reminder sweep complete: checked={summary.checked}, "
            f"matched={len(summary.results)}, sent={summary.sent}, "
            f"failed={len(summary.failures)}"
        )
        return summary

    def _process_item(
        self,
        item: ReminderItem,
        offset: int,
        now: datetime,
        executor: concurrent.futures.Executor,
    ) -> ItemResult:
        """Gate, mark, quota-check, dispatch, log and count one matched reminder.

        :param item: The matched item.
        :param offset: The matched offset.
        :param now: Sweep instant.
        :param executor: Executor used to bound gateway calls.
        :returns: The item's result.
        """
        item_id = str(item.id)

        try:
            contact = get_user_contact(self._session, item.user_id)
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to read contact for user {item.user_id}: {e}")
            return self._store_failed(item_id, offset, e)

        # Held-back reminders stay unmarked so a later sweep in the window can send them
        block = delivery_block_reason(contact, now)
        if block is not None:
            logger.info(f"Reminder for item {item_id} held back: {block}")
            return ItemResult(
                item_id=item_id,
                offset=offset,
                success=False,
                reason=SweepReason.SUPPRESSED,
                error=block,
            )

        try:
            mark = mark_offset_sent(self._session, item, offset, now)
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to mark offset {offset} sent for item {item_id}: {e}")
            return ItemResult(
                item_id=item_id,
                offset=offset,
                success=False,
                reason=SweepReason.MARK_FAILED,
                error=str(e),
            )

        if mark is MarkResult.ALREADY_SENT:
            logger.warning(f"Offset {offset} of item {item_id} already sent by another run")
            return ItemResult(
                item_id=item_id,
                offset=offset,
                success=False,
                reason=SweepReason.ALREADY_SENT,
            )

        try:
            quota = self._quota.status(item.user_id, now)
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to read quota for user {item.user_id}: {e}")
            return self._store_failed(item_id, offset, e)

        if not quota.can_create:
            logger.warning(
                f"Quota exceeded for user {item.user_id}: {quota.usage}/{quota.limit}, "
                f"skipping item {item_id}"
            )
            return ItemResult(
                item_id=item_id,
                offset=offset,
                success=False,
                reason=SweepReason.QUOTA_EXCEEDED,
                error=f"Monthly reminder limit reached ({quota.usage}/{quota.limit})",
            )

        payload = self._build_payload(item, offset, now, contact)
        outcome = self._dispatch(payload, executor)
        errors = self._record_delivery(item, offset, payload, outcome, now)

        if not outcome.ok:
            logger.error(
                f"Reminder dispatch failed for item {item_id} (offset {offset}): "
                f"{outcome.error_message}"
            )
            return ItemResult(
                item_id=item_id,
                offset=offset,
                success=False,
                reason=SweepReason.DISPATCH_FAILED,
                error="; ".join([outcome.error_message or "Dispatch failed", *errors]),
                status_code=outcome.status_code,
            )

        try:
            increment_usage(self._session, item.user_id, month_key_for(now), now)
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            errors.append(f"Delivered but usage not recorded: {e}")
            logger.error(f"Failed to increment usage for user {item.user_id}: {e}")

        logger.info(f"Sent reminder for item {item_id} (offset {offset})")
        return ItemResult(
            item_id=item_id,
            offset=offset,
            success=True,
            reason=SweepReason.SENT,
            error="; ".join(errors) or None,
            status_code=outcome.status_code,
        )

    @staticmethod
    def _store_failed(item_id: str, offset: int, error: SQLAlchemyError) -> ItemResult:
        return ItemResult(
            item_id=item_id,
            offset=offset,
            success=False,
            reason=SweepReason.STORE_FAILED,
            error=str(error),
        )

    def _build_payload(
        self,
        item: ReminderItem,
        offset: int,
        now: datetime,
        contact: UserContact | None,
    ) -> DispatchPayload:
        """Build the gateway payload for a matched reminder.

        :param item: The matched item.
        :param offset: The matched offset.
        :param now: Sweep instant.
        :param contact: The owner's contact details, if any.
        :returns: The payload.
        """
        minutes_until = minutes_until_due(item.due_at, now)
        content = item.build_notification(offset, minutes_until)

        recipient = Recipient(
            user_id=str(item.user_id),
            name=(contact.name if contact else None) or "",
            email=(contact.email if contact else None) or "",
            phone=(contact.phone if contact else None) or "",
        )

        return DispatchPayload(
            recipient=recipient,
            title=content.title,
            body=content.body,
            when_due_at=item.due_at,
            metadata={
                "itemId": str(item.id),
                "itemType": item.item_type,
                "reminderMinutes": offset,
                "minutesUntil": minutes_until,
                "sentAt": now.isoformat(),
                "environment": self._settings.environment,
            },
        )

    def _dispatch(
        self,
        payload: DispatchPayload,
        executor: concurrent.futures.Executor,
    ) -> DispatchOutcome:
        """Call the gateway with a hard timeout.

        :param payload: The reminder to deliver.
        :param executor: Executor running the gateway call.
        :returns: The gateway's outcome, or a failed outcome on timeout/error.
        """
        timeout = self._settings.dispatch_timeout_seconds
        future = executor.submit(self._gateway.send, payload)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            return DispatchOutcome(ok=False, error_message=f"Dispatch timed out after {timeout}s")
        except Exception as e:
            logger.exception("Gateway raised during dispatch")
            return DispatchOutcome(ok=False, error_message=str(e))

    def _record_delivery(
        self,
        item: ReminderItem,
        offset: int,
        payload: DispatchPayload,
        outcome: DispatchOutcome,
        now: datetime,
    ) -> list[str]:
        """Write the notification log entry for a delivery attempt.

        :param item: The reminded item.
        :param offset: The matched offset.
        :param payload: What was handed to the gateway.
        :param outcome: What the gateway reported.
        :param now: Sweep instant.
        :returns: Errors to attach to the item's result (empty on success).
        """
        try:
            create_notification_log(
                self._session,
                user_id=item.user_id,
                item_id=item.id,
                channel=self._gateway.channel,
                reminder_time_minutes=offset,
                message_content=payload.body,
                delivered=outcome.ok,
                recipient=payload.recipient.phone or payload.recipient.email,
                error_message=outcome.error_message,
                status_code=outcome.status_code,
                details={
                    "title": payload.title,
                    "itemType": payload.metadata["itemType"],
                    "minutesUntil": payload.metadata["minutesUntil"],
                },
                now=now,
            )
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to write notification log for item {item.id}: {e}")
            return [f"Notification log not written: {e}"]
        return []


def run_reminder_sweep(
    now: datetime | None = None,
    gateway: NotificationGateway | None = None,
) -> SweepSummary:
    """Run one sweep in its own database session.

    :param now: Instant to evaluate windows against (defaults to now).
    :param gateway: Delivery channel (defaults to the configured gateway).
    :returns: The sweep summary.
    :raises SourceQueryError: If the due items cannot be listed.
    """
    with get_session() as session:
        sweep = ReminderSweep(session, gateway or build_gateway())
        return sweep.run(now)
