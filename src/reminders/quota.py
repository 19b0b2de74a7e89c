"""Monthly reminder quota: limits, usage and upgrade signals per user."""

import logging
import uuid as uuid_module
from dataclasses import dataclass
from datetime import UTC, datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from src.database.accounts import get_active_subscription
from src.database.usage import get_usage, get_usage_history, month_key_for
from src.reminders.config import ReminderSettings, get_reminder_settings
from src.reminders.plans import (
    DEFAULT_PLAN_TYPE,
    LOWEST_TIER,
    PlanTier,
    resolve_plan_limit,
    tier_for_plan_type,
)

logger = logging.getLogger(__name__)

# Usage percentage at which a user is warned they are close to the limit
NEAR_LIMIT_PERCENT = 80

# Usage percentage at which lowest-tier users are nudged to upgrade
UPGRADE_PERCENT = 90

# Months of history shown in usage stats, current month included
HISTORY_MONTHS = 6


def round_half_up(numerator: int, denominator: int) -> int:
    """Divide and round to the nearest integer, halves away from zero.

    Matches how percentages and averages are shown to users, so 1 of 8 is 13%.

    :param numerator: Non-negative dividend.
    :param denominator: Positive divisor.
    :returns: The rounded quotient.
    """
    return (numerator * 2 + denominator) // (denominator * 2)


@dataclass(frozen=True)
class QuotaStatus:
    """Quota position of one user for one month."""

    usage: int
    limit: int
    remaining: int
    usage_percentage: int
    can_create: bool
    plan_type: str
    tier: PlanTier
    is_near_limit: bool
    should_upgrade: bool


@dataclass(frozen=True)
class MonthlyUsage:
    """Usage of one month, for history charts."""

    month_key: str
    used: int
    limit: int


def calculate_quota(
    usage: int,
    limit: int,
    tier: PlanTier,
    plan_type: str = DEFAULT_PLAN_TYPE,
) -> QuotaStatus:
    """Derive the quota signals from a usage count and a limit.

    A zero limit is treated as fully used: percentage 100 and no creation.

    :param usage: Reminders dispatched this month.
    :param limit: Monthly limit for the user's tier.
    :param tier: The user's tier.
    :param plan_type: The billing plan type, reported back to callers.
    :returns: The quota status.
    """
    remaining = max(0, limit - usage)

    if limit <= 0:
        return QuotaStatus(
            usage=usage,
            limit=limit,
            remaining=0,
            usage_percentage=100,
            can_create=False,
            plan_type=plan_type,
            tier=tier,
            is_near_limit=True,
            should_upgrade=tier == LOWEST_TIER,
        )

    # Integer comparisons keep the 80%/90% thresholds exact
    is_near_limit = usage * 100 >= limit * NEAR_LIMIT_PERCENT
    should_upgrade = tier == LOWEST_TIER and usage * 100 >= limit * UPGRADE_PERCENT

    return QuotaStatus(
        usage=usage,
        limit=limit,
        remaining=remaining,
        usage_percentage=round_half_up(usage * 100, limit),
        can_create=usage < limit,
        plan_type=plan_type,
        tier=tier,
        is_near_limit=is_near_limit,
        should_upgrade=should_upgrade,
    )


class QuotaEngine:
    """Answers quota questions for a user in the current month."""

    def __init__(self, session: Session, settings: ReminderSettings | None = None) -> None:
        """Initialise the quota engine.

        :param session: Database session for subscription and usage reads.
        :param settings: Reminder settings (defaults to cached settings).
        """
        self._session = session
        self._settings = settings or get_reminder_settings()

    def _plan_type(self, user_id: uuid_module.UUID) -> str:
        subscription = get_active_subscription(self._session, user_id)
        if subscription is None:
            return DEFAULT_PLAN_TYPE
        return subscription.plan_type

    def status(self, user_id: uuid_module.UUID, now: datetime | None = None) -> QuotaStatus:
        """Compute the full quota status for a user.

        :param user_id: User ID.
        :param now: Current time (defaults to now); selects the month.
        :returns: The quota status.
        """
        plan_type = self._plan_type(user_id)
        tier = tier_for_plan_type(plan_type)
        limit = resolve_plan_limit(tier, self._settings)
        usage = get_usage(self._session, user_id, month_key_for(now))

        quota = calculate_quota(usage, limit, tier, plan_type)
        logger.debug(
            f"Quota for user_id={user_id}: usage={quota.usage}/{quota.limit}, "
            f"tier={tier}, can_create={quota.can_create}"
        )
        return quota

    def can_create(self, user_id: uuid_module.UUID, now: datetime | None = None) -> bool:
        """Whether the user may receive another reminder this month."""
        return self.status(user_id, now).can_create

    def remaining(self, user_id: uuid_module.UUID, now: datetime | None = None) -> int:
        """Reminders left this month."""
        return self.status(user_id, now).remaining

    def is_near_limit(self, user_id: uuid_module.UUID, now: datetime | None = None) -> bool:
        """Whether usage has reached 80% of the limit."""
        return self.status(user_id, now).is_near_limit

    def should_upgrade(self, user_id: uuid_module.UUID, now: datetime | None = None) -> bool:
        """Whether a lowest-tier user has reached 90% of the limit."""
        return self.status(user_id, now).should_upgrade

    def monthly_breakdown(
        self,
        user_id: uuid_module.UUID,
        limit: int,
        now: datetime | None = None,
        months: int = HISTORY_MONTHS,
    ) -> list[MonthlyUsage]:
        """Usage per month for the last few months, oldest first.

        Months without a usage record are reported as zero.

        :param user_id: User ID.
        :param limit: Current monthly limit, reported alongside each month.
        :param now: Current time (defaults to now).
        :param months: Number of months including the current one.
        :returns: One entry per month.
        """
        if now is None:
            now = datetime.now(UTC)

        month_keys = [
            month_key_for(now - relativedelta(months=i)) for i in range(months - 1, -1, -1)
        ]
        records = get_usage_history(self._session, user_id, month_keys[0])
        used_by_month = {record.month_key: record.count for record in records}

        return [
            MonthlyUsage(month_key=key, used=used_by_month.get(key, 0), limit=limit)
            for key in month_keys
        ]
