"""Subscription tiers and their monthly reminder limits."""

from enum import StrEnum

from src.reminders.config import ReminderSettings, get_reminder_settings


class PlanTier(StrEnum):
    """Subscription tiers, lowest first."""

    BASIC = "basic"
    PRO = "pro"


LOWEST_TIER = PlanTier.BASIC

# Plan type used when a user has no active subscription
DEFAULT_PLAN_TYPE = "free"

# Billing plan types that are on the pro tier
_PRO_PLAN_SUFFIX = "_pro"


def tier_for_plan_type(plan_type: str | None) -> PlanTier:
    """Map a billing plan type to its reminder tier.

    ``monthly_pro`` and ``annual_pro`` are pro; ``free``, ``monthly``,
    ``annual``, unknown or missing plans are basic.

    :param plan_type: Billing plan type, or None when there is no subscription.
    :returns: The reminder tier.
    """
    if plan_type and (plan_type == PlanTier.PRO.value or plan_type.endswith(_PRO_PLAN_SUFFIX)):
        return PlanTier.PRO
    return PlanTier.BASIC


def resolve_plan_limit(tier: PlanTier, settings: ReminderSettings | None = None) -> int:
    """Look up the monthly reminder limit for a tier.

    :param tier: Subscription tier.
    :param settings: Settings to read limits from (defaults to cached settings).
    :returns: Monthly limit.
    """
    if settings is None:
        settings = get_reminder_settings()

    limits = {
        PlanTier.BASIC: settings.basic_limit,
        PlanTier.PRO: settings.pro_limit,
    }
    return limits[tier]
