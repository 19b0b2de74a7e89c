"""Read operations for subscriptions, contacts and API tokens."""

from __future__ import annotations

import hashlib
import logging
import uuid as uuid_module

from sqlalchemy.orm import Session

from src.database.accounts.models import ApiToken, Subscription, SubscriptionStatus, UserContact

logger = logging.getLogger(__name__)


def compute_token_hash(token: str) -> str:
    """Compute the SHA256 hash under which a bearer token is stored.

    :param token: The raw bearer token.
    :returns: The hex-encoded SHA256 hash (64 characters).
    """
    return hashlib.sha256(token.strip().encode()).hexdigest()


def get_api_token(session: Session, token: str) -> ApiToken | None:
    """Look up a bearer token.

    :param session: Database session.
    :param token: The raw bearer token.
    :returns: The stored token record or None if unknown.
    """
    token_hash = compute_token_hash(token)
    return session.query(ApiToken).filter(ApiToken.token_hash == token_hash).first()


def get_active_subscription(
    session: Session,
    user_id: uuid_module.UUID,
) -> Subscription | None:
    """Get the newest active subscription for a user.

    :param session: Database session.
    :param user_id: User ID.
    :returns: The subscription or None if the user has no active plan.
    """
    return (
        session.query(Subscription)
        .filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(Subscription.created_at.desc())
        .first()
    )


def get_user_contact(
    session: Session,
    user_id: uuid_module.UUID,
) -> UserContact | None:
    """Get a user's contact details.

    :param session: Database session.
    :param user_id: User ID.
    :returns: The contact record or None if missing.
    """
    return session.query(UserContact).filter(UserContact.user_id == user_id).first()
