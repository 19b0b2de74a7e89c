"""Tests for the server-side reminder sweep."""

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, time, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

from sqlalchemy.exc import OperationalError

from src.database.reminders import MarkResult
from src.database.reminders.models import Appointment, ScheduledTransaction
from src.notifications.base import NotificationGateway
from src.notifications.models import DispatchOutcome, DispatchPayload
from src.reminders.config import ReminderSettings
from src.reminders.exceptions import SourceQueryError
from src.reminders.plans import PlanTier
from src.reminders.quota import calculate_quota
from src.reminders.sweep import ReminderSweep, SweepReason, run_reminder_sweep

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class FakeGateway(NotificationGateway):
    """Gateway that records payloads and returns a fixed outcome."""

    def __init__(self, outcome: DispatchOutcome | None = None) -> None:
        self.outcome = outcome or DispatchOutcome(ok=True, status_code=200)
        self.payloads: list[DispatchPayload] = []
        self._lock = threading.Lock()

    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        with self._lock:
            self.payloads.append(payload)
        return self.outcome


class RaisingGateway(NotificationGateway):
    """Gateway that raises instead of reporting an outcome."""

    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        raise RuntimeError("connection reset")


class HangingGateway(NotificationGateway):
    """Gateway that blocks until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def send(self, payload: DispatchPayload) -> DispatchOutcome:
        self.release.wait(timeout=5)
        return DispatchOutcome(ok=True)


class InMemoryMarks:
    """Shared sent-marker store with check-and-set semantics."""

    def __init__(self) -> None:
        self.marked: set[tuple[str, int]] = set()
        self._lock = threading.Lock()

    def mark(self, session: MagicMock, item: Appointment, offset: int, now: datetime) -> MarkResult:
        key = (str(item.id), offset)
        with self._lock:
            if key in self.marked:
                return MarkResult.ALREADY_SENT
            self.marked.add(key)
        return MarkResult.SENT


def _appointment(
    due_in: timedelta,
    offsets: list[int] | None = None,
    enabled: bool = True,
) -> Appointment:
    return Appointment(
        id=uuid4(),
        user_id=uuid4(),
        title="Dentist",
        description="Bring insurance card",
        location="Main St 1",
        due_at=NOW + due_in,
        reminder_offsets=[15] if offsets is None else offsets,
        sent_offsets=[],
        reminder_enabled=enabled,
        status="pending",
        version=0,
    )


def _contact(**overrides: object) -> SimpleNamespace:
    fields = {
        "name": "Ana",
        "email": "ana@example.com",
        "phone": "+351900000000",
        "reminders_enabled": True,
        "quiet_hours_start": None,
        "quiet_hours_end": None,
        "timezone": "UTC",
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _quota_engine(usage: int = 0, limit: int = 15) -> MagicMock:
    engine = MagicMock()
    engine.status.return_value = calculate_quota(usage, limit, PlanTier.BASIC)
    return engine


class SweepTestCase(unittest.TestCase):
    """Shared fixtures: mocked session and patched persistence calls."""

    def setUp(self) -> None:
        """Set up session, settings and patches."""
        self.session = MagicMock()
        self.settings = ReminderSettings(
            _env_file=None,
            dispatch_timeout_seconds=0.2,
            dispatch_workers=2,
            environment="test",
        )

        patchers = {
            "list_due_items": patch("src.reminders.sweep.list_due_items"),
            "mark_offset_sent": patch("src.reminders.sweep.mark_offset_sent"),
            "increment_usage": patch("src.reminders.sweep.increment_usage"),
            "get_user_contact": patch("src.reminders.sweep.get_user_contact"),
            "create_notification_log": patch("src.reminders.sweep.create_notification_log"),
        }
        self.mocks = {name: patcher.start() for name, patcher in patchers.items()}
        for patcher in patchers.values():
            self.addCleanup(patcher.stop)

        self.mocks["mark_offset_sent"].return_value = MarkResult.SENT
        self.mocks["increment_usage"].return_value = 1
        self.mocks["get_user_contact"].return_value = _contact()

    def _sweep(
        self,
        gateway: NotificationGateway,
        quota_engine: MagicMock | None = None,
    ) -> ReminderSweep:
        return ReminderSweep(
            self.session,
            gateway,
            quota_engine=quota_engine or _quota_engine(),
            settings=self.settings,
        )


class TestReminderSweep(SweepTestCase):
    """Tests for ReminderSweep.run."""

    def test_sends_matched_item(self) -> None:
        """Test the happy path: mark, dispatch, count."""
        item = _appointment(timedelta(minutes=14))
        self.mocks["list_due_items"].return_value = [item]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.checked, 1)
        self.assertEqual(summary.sent, 1)
        self.assertEqual(len(summary.results), 1)
        result = summary.results[0]
        self.assertTrue(result.success)
        self.assertEqual(result.reason, SweepReason.SENT)
        self.assertEqual(result.offset, 15)
        self.assertEqual(result.status_code, 200)
        self.assertEqual(summary.timestamp, NOW)
        self.mocks["mark_offset_sent"].assert_called_once_with(self.session, item, 15, NOW)
        self.mocks["increment_usage"].assert_called_once_with(
            self.session, item.user_id, "2026-10", NOW
        )
        self.assertEqual(len(gateway.payloads), 1)

    def test_payload_contents(self) -> None:
        """Test the payload handed to the gateway."""
        item = _appointment(timedelta(minutes=14))
        self.mocks["list_due_items"].return_value = [item]
        gateway = FakeGateway()

        self._sweep(gateway).run(NOW)

        payload = gateway.payloads[0]
        self.assertEqual(payload.title, "Reminder: Dentist")
        self.assertIn("starts in 14 minutes", payload.body)
        self.assertIn("Where: Main St 1", payload.body)
        self.assertEqual(payload.recipient.email, "ana@example.com")
        self.assertEqual(payload.recipient.user_id, str(item.user_id))
        self.assertEqual(payload.when_due_at, item.due_at)
        self.assertEqual(payload.metadata["itemId"], str(item.id))
        self.assertEqual(payload.metadata["itemType"], "appointment")
        self.assertEqual(payload.metadata["reminderMinutes"], 15)
        self.assertEqual(payload.metadata["minutesUntil"], 14)
        self.assertEqual(payload.metadata["environment"], "test")

    def test_missing_contact_gives_empty_recipient_fields(self) -> None:
        """Test that a user without contact details is still reminded."""
        self.mocks["get_user_contact"].return_value = None
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.sent, 1)
        self.assertEqual(gateway.payloads[0].recipient.email, "")

    def test_scheduled_transaction_payload(self) -> None:
        """Test that scheduled transactions use their own text."""
        item = ScheduledTransaction(
            id=uuid4(),
            user_id=uuid4(),
            title="Rent",
            description="Rent",
            amount=850,
            transaction_type="expense",
            due_at=NOW + timedelta(minutes=60),
            reminder_offsets=[60],
            sent_offsets=[],
            reminder_enabled=True,
            status="pending",
        )
        self.mocks["list_due_items"].return_value = [item]
        gateway = FakeGateway()

        self._sweep(gateway).run(NOW)

        payload = gateway.payloads[0]
        self.assertEqual(payload.title, "Expense reminder")
        self.assertIn("Expense of 850.00 for 'Rent' is due in 1 hour.", payload.body)
        self.assertEqual(payload.metadata["itemType"], "scheduled_transaction")

    def test_item_outside_window_is_not_processed(self) -> None:
        """Test that an item 20 minutes out is checked but not matched."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=20))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.checked, 1)
        self.assertEqual(summary.results, [])
        self.mocks["mark_offset_sent"].assert_not_called()
        self.assertEqual(gateway.payloads, [])

    def test_one_dispatch_per_item_when_offsets_overlap(self) -> None:
        """Test that two in-window offsets produce a single dispatch."""
        item = _appointment(timedelta(minutes=11), offsets=[15, 12])
        self.mocks["list_due_items"].return_value = [item]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(len(gateway.payloads), 1)
        self.assertEqual(gateway.payloads[0].metadata["reminderMinutes"], 15)
        self.assertEqual(summary.sent, 1)

    def test_disabled_item_is_skipped(self) -> None:
        """Test that a disabled item returned by the query is still ignored."""
        self.mocks["list_due_items"].return_value = [
            _appointment(timedelta(minutes=14), enabled=False)
        ]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.results, [])
        self.assertEqual(gateway.payloads, [])

    def test_quota_exceeded(self) -> None:
        """Test that a user at the limit is marked but not dispatched or counted."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway, _quota_engine(usage=15, limit=15)).run(NOW)

        result = summary.results[0]
        self.assertFalse(result.success)
        self.assertEqual(result.reason, SweepReason.QUOTA_EXCEEDED)
        self.assertIn("15/15", result.error)
        self.mocks["mark_offset_sent"].assert_called_once()
        self.mocks["increment_usage"].assert_not_called()
        self.assertEqual(gateway.payloads, [])
        self.assertEqual(summary.sent, 0)

    def test_dispatch_failure_is_reported(self) -> None:
        """Test that a refused dispatch is reported and not counted."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway(
            DispatchOutcome(ok=False, status_code=502, error_message="Webhook returned 502")
        )

        summary = self._sweep(gateway).run(NOW)

        result = summary.results[0]
        self.assertFalse(result.success)
        self.assertEqual(result.reason, SweepReason.DISPATCH_FAILED)
        self.assertEqual(result.status_code, 502)
        self.assertEqual(summary.failures, [result])
        self.mocks["increment_usage"].assert_not_called()

    def test_gateway_exception_is_contained(self) -> None:
        """Test that a raising gateway fails only its own item."""
        self.mocks["list_due_items"].return_value = [
            _appointment(timedelta(minutes=14)),
            _appointment(timedelta(minutes=13)),
        ]

        summary = self._sweep(RaisingGateway()).run(NOW)

        self.assertEqual(len(summary.results), 2)
        for result in summary.results:
            self.assertEqual(result.reason, SweepReason.DISPATCH_FAILED)
            self.assertIn("connection reset", result.error)

    def test_dispatch_timeout(self) -> None:
        """Test that a hung gateway call is abandoned after the timeout."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = HangingGateway()
        self.addCleanup(gateway.release.set)

        summary = self._sweep(gateway).run(NOW)

        result = summary.results[0]
        self.assertEqual(result.reason, SweepReason.DISPATCH_FAILED)
        self.assertIn("timed out", result.error)
        self.mocks["increment_usage"].assert_not_called()
        self.assertFalse(self.mocks["create_notification_log"].call_args.kwargs["delivered"])

    def test_already_sent_by_another_run(self) -> None:
        """Test that losing the mark race skips dispatch."""
        self.mocks["mark_offset_sent"].return_value = MarkResult.ALREADY_SENT
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.results[0].reason, SweepReason.ALREADY_SENT)
        self.assertEqual(gateway.payloads, [])

    def test_mark_failure(self) -> None:
        """Test that a database error while marking skips the item."""
        self.mocks["mark_offset_sent"].side_effect = OperationalError("UPDATE", {}, Exception())
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.results[0].reason, SweepReason.MARK_FAILED)
        self.session.rollback.assert_called()
        self.assertEqual(gateway.payloads, [])

    def test_usage_failure_after_delivery(self) -> None:
        """Test that a delivered reminder stays successful if counting fails."""
        self.mocks["increment_usage"].side_effect = OperationalError("INSERT", {}, Exception())
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]

        summary = self._sweep(FakeGateway()).run(NOW)

        result = summary.results[0]
        self.assertTrue(result.success)
        self.assertIn("usage not recorded", result.error)
        self.assertEqual(summary.sent, 1)

    def test_source_query_failure(self) -> None:
        """Test that failing to list items aborts the whole sweep."""
        self.mocks["list_due_items"].side_effect = OperationalError("SELECT", {}, Exception())

        with self.assertRaises(SourceQueryError):
            self._sweep(FakeGateway()).run(NOW)

    def test_failures_do_not_stop_other_items(self) -> None:
        """Test that one item's quota failure does not affect the next."""
        first = _appointment(timedelta(minutes=14))
        second = _appointment(timedelta(minutes=12))
        self.mocks["list_due_items"].return_value = [first, second]
        quota_engine = MagicMock()
        quota_engine.status.side_effect = [
            calculate_quota(15, 15, PlanTier.BASIC),
            calculate_quota(2, 15, PlanTier.BASIC),
        ]
        gateway = FakeGateway()

        summary = self._sweep(gateway, quota_engine).run(NOW)

        self.assertEqual(
            [result.reason for result in summary.results],
            [SweepReason.QUOTA_EXCEEDED, SweepReason.SENT],
        )
        self.assertEqual(summary.sent, 1)


    def test_disabled_preferences_hold_reminder_back(self) -> None:
        """Test that a user who switched reminders off is neither marked nor sent."""
        self.mocks["get_user_contact"].return_value = _contact(reminders_enabled=False)
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        result = summary.results[0]
        self.assertFalse(result.success)
        self.assertEqual(result.reason, SweepReason.SUPPRESSED)
        self.assertEqual(result.error, "Reminders disabled by user")
        self.mocks["mark_offset_sent"].assert_not_called()
        self.mocks["create_notification_log"].assert_not_called()
        self.assertEqual(gateway.payloads, [])

    def test_quiet_hours_hold_reminder_back(self) -> None:
        """Test that a reminder inside the user's quiet hours is not marked."""
        self.mocks["get_user_contact"].return_value = _contact(
            quiet_hours_start=time(11, 30),
            quiet_hours_end=time(13, 0),
        )
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.results[0].reason, SweepReason.SUPPRESSED)
        self.assertIn("Quiet hours (11:30-13:00 UTC)", summary.results[0].error)
        self.mocks["mark_offset_sent"].assert_not_called()
        self.assertEqual(gateway.payloads, [])

    def test_contact_read_failure(self) -> None:
        """Test that a failed contact read is a store failure and marks nothing."""
        self.mocks["get_user_contact"].side_effect = OperationalError("SELECT", {}, Exception())
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway()

        summary = self._sweep(gateway).run(NOW)

        self.assertEqual(summary.results[0].reason, SweepReason.STORE_FAILED)
        self.mocks["mark_offset_sent"].assert_not_called()
        self.session.rollback.assert_called()
        self.assertEqual(gateway.payloads, [])

    def test_quota_read_failure(self) -> None:
        """Test that a failed quota read is a store failure, not a dispatch failure."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        quota_engine = MagicMock()
        quota_engine.status.side_effect = OperationalError("SELECT", {}, Exception())
        gateway = FakeGateway()

        summary = self._sweep(gateway, quota_engine).run(NOW)

        result = summary.results[0]
        self.assertEqual(result.reason, SweepReason.STORE_FAILED)
        self.assertFalse(result.success)
        self.assertEqual(gateway.payloads, [])
        self.mocks["create_notification_log"].assert_not_called()

    def test_unexpected_error_has_its_own_reason(self) -> None:
        """Test that a non-database error before sending is not a dispatch failure."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        quota_engine = MagicMock()
        quota_engine.status.side_effect = RuntimeError("plan lookup exploded")

        summary = self._sweep(FakeGateway(), quota_engine).run(NOW)

        result = summary.results[0]
        self.assertEqual(result.reason, SweepReason.UNEXPECTED_ERROR)
        self.assertIn("plan lookup exploded", result.error)

    def test_successful_delivery_is_logged(self) -> None:
        """Test that a delivered reminder writes a sent notification log entry."""
        item = _appointment(timedelta(minutes=14))
        self.mocks["list_due_items"].return_value = [item]

        self._sweep(FakeGateway()).run(NOW)

        self.mocks["create_notification_log"].assert_called_once()
        kwargs = self.mocks["create_notification_log"].call_args.kwargs
        self.assertEqual(kwargs["item_id"], item.id)
        self.assertEqual(kwargs["user_id"], item.user_id)
        self.assertEqual(kwargs["reminder_time_minutes"], 15)
        self.assertEqual(kwargs["channel"], "generic")
        self.assertTrue(kwargs["delivered"])
        self.assertEqual(kwargs["recipient"], "+351900000000")
        self.assertIn("starts in 14 minutes", kwargs["message_content"])
        self.assertEqual(kwargs["now"], NOW)

    def test_failed_delivery_is_logged(self) -> None:
        """Test that a refused dispatch writes a failed log entry with the error."""
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]
        gateway = FakeGateway(
            DispatchOutcome(ok=False, status_code=500, error_message="Webhook returned 500")
        )

        self._sweep(gateway).run(NOW)

        kwargs = self.mocks["create_notification_log"].call_args.kwargs
        self.assertFalse(kwargs["delivered"])
        self.assertEqual(kwargs["error_message"], "Webhook returned 500")
        self.assertEqual(kwargs["status_code"], 500)

    def test_log_failure_keeps_delivery_successful(self) -> None:
        """Test that a delivered reminder is still counted when its log entry fails."""
        self.mocks["create_notification_log"].side_effect = OperationalError(
            "INSERT", {}, Exception()
        )
        self.mocks["list_due_items"].return_value = [_appointment(timedelta(minutes=14))]

        summary = self._sweep(FakeGateway()).run(NOW)

        result = summary.results[0]
        self.assertTrue(result.success)
        self.assertIn("Notification log not written", result.error)
        self.mocks["increment_usage"].assert_called_once()


class TestConcurrentSweeps(SweepTestCase):
    """Tests for overlapping sweeps over the same items."""

    def test_each_offset_dispatched_at_most_once(self) -> None:
        """Test that two overlapping sweeps never double-send."""
        items = [_appointment(timedelta(minutes=14)) for _ in range(10)]
        self.mocks["list_due_items"].return_value = items
        self.mocks["mark_offset_sent"].side_effect = InMemoryMarks().mark
        gateway = FakeGateway()

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(self._sweep(gateway, _quota_engine()).run, NOW) for _ in range(2)
            ]
            summaries = [future.result() for future in futures]

        dispatched = [payload.metadata["itemId"] for payload in gateway.payloads]
        self.assertEqual(len(dispatched), len(items))
        self.assertEqual(len(set(dispatched)), len(items))
        self.assertEqual(sum(summary.sent for summary in summaries), len(items))

    def test_second_sweep_after_first_sends_nothing(self) -> None:
        """Test that a repeat sweep in the same window finds nothing new."""
        item = _appointment(timedelta(minutes=14))
        self.mocks["list_due_items"].return_value = [item]
        self.mocks["mark_offset_sent"].side_effect = InMemoryMarks().mark
        gateway = FakeGateway()

        self._sweep(gateway).run(NOW)
        second = self._sweep(gateway).run(NOW + timedelta(minutes=1))

        self.assertEqual(len(gateway.payloads), 1)
        self.assertEqual(second.results[0].reason, SweepReason.ALREADY_SENT)


class TestRunReminderSweep(unittest.TestCase):
    """Tests for run_reminder_sweep."""

    @patch("src.reminders.sweep.list_due_items")
    @patch("src.reminders.sweep.get_session")
    def test_uses_own_session(
        self,
        mock_get_session: MagicMock,
        mock_list_due_items: MagicMock,
    ) -> None:
        """Test that the sweep runs inside a managed session."""
        mock_session = MagicMock()
        mock_get_session.return_value.__enter__ = MagicMock(return_value=mock_session)
        mock_get_session.return_value.__exit__ = MagicMock(return_value=False)
        mock_list_due_items.return_value = []

        summary = run_reminder_sweep(NOW, gateway=FakeGateway())

        self.assertEqual(summary.checked, 0)
        self.assertEqual(mock_list_due_items.call_args.args[0], mock_session)

    @patch("src.reminders.sweep.build_gateway")
    @patch("src.reminders.sweep.list_due_items")
    @patch("src.reminders.sweep.get_session")
    def test_builds_configured_gateway(
        self,
        mock_get_session: MagicMock,
        mock_list_due_items: MagicMock,
        mock_build_gateway: MagicMock,
    ) -> None:
        """Test that the configured gateway is used when none is given."""
        mock_get_session.return_value.__enter__ = MagicMock(return_value=MagicMock())
        mock_get_session.return_value.__exit__ = MagicMock(return_value=False)
        mock_list_due_items.return_value = []

        run_reminder_sweep(NOW)

        mock_build_gateway.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
