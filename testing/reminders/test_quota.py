"""Tests for the monthly reminder quota."""

import unittest
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

from src.reminders.config import ReminderSettings
from src.reminders.plans import PlanTier
from src.reminders.quota import QuotaEngine, calculate_quota, round_half_up

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class TestCalculateQuota(unittest.TestCase):
    """Tests for calculate_quota."""

    def test_limit_reached(self) -> None:
        """Test that a basic user at 15 of 15 cannot receive more."""
        quota = calculate_quota(15, 15, PlanTier.BASIC)

        self.assertFalse(quota.can_create)
        self.assertEqual(quota.remaining, 0)
        self.assertEqual(quota.usage_percentage, 100)
        self.assertTrue(quota.is_near_limit)
        self.assertTrue(quota.should_upgrade)

    def test_near_limit_at_eighty_percent(self) -> None:
        """Test that 12 of 15 is 80% and near the limit."""
        quota = calculate_quota(12, 15, PlanTier.BASIC)

        self.assertEqual(quota.usage_percentage, 80)
        self.assertTrue(quota.is_near_limit)
        self.assertFalse(quota.should_upgrade)
        self.assertTrue(quota.can_create)
        self.assertEqual(quota.remaining, 3)

    def test_below_near_limit(self) -> None:
        """Test that 11 of 15 is not near the limit."""
        quota = calculate_quota(11, 15, PlanTier.BASIC)

        self.assertEqual(quota.usage_percentage, 73)
        self.assertFalse(quota.is_near_limit)

    def test_upgrade_signal_at_ninety_percent(self) -> None:
        """Test that 14 of 15 on basic suggests an upgrade."""
        quota = calculate_quota(14, 15, PlanTier.BASIC)

        self.assertEqual(quota.usage_percentage, 93)
        self.assertTrue(quota.should_upgrade)

    def test_no_upgrade_signal_on_pro(self) -> None:
        """Test that pro users are never nudged to upgrade."""
        quota = calculate_quota(95, 100, PlanTier.PRO, "monthly_pro")

        self.assertTrue(quota.is_near_limit)
        self.assertFalse(quota.should_upgrade)
        self.assertEqual(quota.plan_type, "monthly_pro")

    def test_zero_limit(self) -> None:
        """Test that a zero limit reads as fully used."""
        quota = calculate_quota(0, 0, PlanTier.BASIC)

        self.assertEqual(quota.usage_percentage, 100)
        self.assertFalse(quota.can_create)
        self.assertEqual(quota.remaining, 0)

    def test_usage_above_limit(self) -> None:
        """Test that remaining never goes negative."""
        quota = calculate_quota(20, 15, PlanTier.BASIC)

        self.assertEqual(quota.remaining, 0)
        self.assertEqual(quota.usage_percentage, 133)
        self.assertFalse(quota.can_create)

    def test_unused_quota(self) -> None:
        """Test a fresh month."""
        quota = calculate_quota(0, 15, PlanTier.BASIC)

        self.assertEqual(quota.usage_percentage, 0)
        self.assertEqual(quota.remaining, 15)
        self.assertTrue(quota.can_create)

    def test_half_percentages_round_up(self) -> None:
        """Test that 1 of 8 (12.5%) and 1 of 40 (2.5%) round upwards."""
        self.assertEqual(calculate_quota(1, 8, PlanTier.BASIC).usage_percentage, 13)
        self.assertEqual(calculate_quota(1, 40, PlanTier.BASIC).usage_percentage, 3)


class TestRoundHalfUp(unittest.TestCase):
    """Tests for round_half_up."""

    def test_rounding(self) -> None:
        """Test exact, below-half, half and above-half quotients."""
        self.assertEqual(round_half_up(10, 5), 2)
        self.assertEqual(round_half_up(7, 5), 1)
        self.assertEqual(round_half_up(5, 2), 3)
        self.assertEqual(round_half_up(21, 6), 4)
        self.assertEqual(round_half_up(8, 5), 2)
        self.assertEqual(round_half_up(0, 3), 0)


class TestQuotaEngine(unittest.TestCase):
    """Tests for QuotaEngine."""

    def setUp(self) -> None:
        """Set up engine with a mocked session."""
        self.session = MagicMock()
        self.settings = ReminderSettings(_env_file=None)
        self.engine = QuotaEngine(self.session, self.settings)
        self.user_id = uuid4()

    @patch("src.reminders.quota.get_usage")
    @patch("src.reminders.quota.get_active_subscription")
    def test_status_without_subscription(
        self,
        mock_get_subscription: MagicMock,
        mock_get_usage: MagicMock,
    ) -> None:
        """Test that users without a subscription get the free plan limit."""
        mock_get_subscription.return_value = None
        mock_get_usage.return_value = 3

        quota = self.engine.status(self.user_id, NOW)

        self.assertEqual(quota.plan_type, "free")
        self.assertEqual(quota.tier, PlanTier.BASIC)
        self.assertEqual(quota.limit, 15)
        self.assertEqual(quota.remaining, 12)
        mock_get_usage.assert_called_once_with(self.session, self.user_id, "2026-10")

    @patch("src.reminders.quota.get_usage")
    @patch("src.reminders.quota.get_active_subscription")
    def test_status_with_pro_subscription(
        self,
        mock_get_subscription: MagicMock,
        mock_get_usage: MagicMock,
    ) -> None:
        """Test that a pro subscription raises the limit."""
        mock_get_subscription.return_value = SimpleNamespace(plan_type="annual_pro")
        mock_get_usage.return_value = 40

        quota = self.engine.status(self.user_id, NOW)

        self.assertEqual(quota.tier, PlanTier.PRO)
        self.assertEqual(quota.limit, 100)
        self.assertEqual(quota.usage_percentage, 40)
        self.assertTrue(self.engine.can_create(self.user_id, NOW))
        self.assertEqual(self.engine.remaining(self.user_id, NOW), 60)
        self.assertFalse(self.engine.is_near_limit(self.user_id, NOW))
        self.assertFalse(self.engine.should_upgrade(self.user_id, NOW))

    @patch("src.reminders.quota.get_usage")
    @patch("src.reminders.quota.get_active_subscription")
    def test_can_create_false_at_limit(
        self,
        mock_get_subscription: MagicMock,
        mock_get_usage: MagicMock,
    ) -> None:
        """Test that the engine refuses once the limit is reached."""
        mock_get_subscription.return_value = SimpleNamespace(plan_type="monthly")
        mock_get_usage.return_value = 15

        self.assertFalse(self.engine.can_create(self.user_id, NOW))
        self.assertTrue(self.engine.should_upgrade(self.user_id, NOW))

    @patch("src.reminders.quota.get_usage_history")
    def test_monthly_breakdown(self, mock_get_history: MagicMock) -> None:
        """Test six months oldest first with missing months as zero."""
        mock_get_history.return_value = [
            SimpleNamespace(month_key="2026-10", count=4),
            SimpleNamespace(month_key="2026-07", count=2),
        ]

        breakdown = self.engine.monthly_breakdown(self.user_id, 15, NOW)

        self.assertEqual(
            [month.month_key for month in breakdown],
            ["2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10"],
        )
        self.assertEqual([month.used for month in breakdown], [0, 0, 2, 0, 0, 4])
        self.assertTrue(all(month.limit == 15 for month in breakdown))
        mock_get_history.assert_called_once_with(self.session, self.user_id, "2026-05")

    @patch("src.reminders.quota.get_usage_history")
    def test_monthly_breakdown_crosses_year(self, mock_get_history: MagicMock) -> None:
        """Test month keys across a year boundary from the 31st."""
        mock_get_history.return_value = []

        breakdown = self.engine.monthly_breakdown(
            self.user_id, 15, datetime(2026, 3, 31, tzinfo=UTC), months=4
        )

        self.assertEqual(
            [month.month_key for month in breakdown],
            ["2025-12", "2026-01", "2026-02", "2026-03"],
        )


if __name__ == "__main__":
    unittest.main()
