"""Subscription service - sign-up and email confirmation"""
import logging
import secrets
import string
import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from mailroom.models.subscription import (
    STATUS_CONFIRMED, STATUS_PENDING_CONFIRMATION, Subscription, SubscriptionToken
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_TOKEN_LENGTH = 25
_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_subscription_token() -> str:
    """Random 25 character alphanumeric confirmation token"""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(SUBSCRIPTION_TOKEN_LENGTH))


def parse_subscription_token(value: str) -> str:
    """Validate the shape of a confirmation token

    Raises:
        ValueError: If the token is not 25 alphanumeric characters
    """
    if len(value) != SUBSCRIPTION_TOKEN_LENGTH or any(c not in _TOKEN_ALPHABET for c in value):
        raise ValueError("Malformed subscription token")
    return value


def register_subscriber(db: Session, name: str, email: str) -> Tuple[Subscription, Optional[str]]:
    """Create or refresh a pending subscription (not committed)

    A new address gets a pending subscription and a token. An address still
    pending confirmation gets a fresh token. A confirmed address is left alone.

    Returns:
        (subscriber, token to email) - token is None if no email should be sent
    """
    subscriber = db.query(Subscription).filter(Subscription.email == email).first()

    if subscriber is None:
        subscriber = Subscription(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            status=STATUS_PENDING_CONFIRMATION,
        )
        db.add(subscriber)
        logger.info(f"New subscriber {subscriber.id} pending confirmation")
    elif subscriber.status == STATUS_CONFIRMED:
        logger.info(f"Subscriber {subscriber.id} is already confirmed, nothing to do")
        return subscriber, None
    else:
        logger.info(f"Subscriber {subscriber.id} signed up again, issuing a new token")

    token = generate_subscription_token()
    db.add(SubscriptionToken(subscription_token=token, subscriber_id=subscriber.id))
    db.flush()
    return subscriber, token


def confirm_subscriber(db: Session, subscription_token: str) -> Optional[Subscription]:
    """Mark the subscriber owning `subscription_token` as confirmed (not committed)

    Returns:
        The confirmed subscriber, or None if the token is unknown
    """
    token = db.query(SubscriptionToken).filter(
        SubscriptionToken.subscription_token == subscription_token
    ).first()
    if token is None:
        return None

    subscriber = token.subscriber
    if subscriber.status != STATUS_CONFIRMED:
        subscriber.status = STATUS_CONFIRMED
        logger.info(f"Subscriber {subscriber.id} confirmed")
    return subscriber
