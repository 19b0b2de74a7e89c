"""Account data read by the reminder service."""

from src.database.accounts.models import ApiToken, Subscription, SubscriptionStatus, UserContact
from src.database.accounts.operations import (
    compute_token_hash,
    get_active_subscription,
    get_api_token,
    get_user_contact,
)

__all__ = [
    "ApiToken",
    "Subscription",
    "SubscriptionStatus",
    "UserContact",
    "compute_token_hash",
    "get_active_subscription",
    "get_api_token",
    "get_user_contact",
]
