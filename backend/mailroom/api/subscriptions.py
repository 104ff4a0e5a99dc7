"""Subscription API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from mailroom.db.session import get_db
from mailroom.schemas.subscriptions import SubscribeRequest
from mailroom.services.email_service import EmailClient, get_email_client, send_confirmation_email
from mailroom.services.subscription_service import (
    confirm_subscriber, parse_subscription_token, register_subscriber
)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])
logger = logging.getLogger(__name__)


@router.post("")
async def subscribe(
    request_data: SubscribeRequest,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client)
):
    """Register a subscriber and email them a confirmation link"""
    try:
        subscriber, token = register_subscriber(db, request_data.name, request_data.email)
        if token is not None:
            await send_confirmation_email(email_client, subscriber.email, token)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Subscription failed for {request_data.email}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to register the subscription")

    return {"status": subscriber.status}


@router.get("/confirm")
def confirm(subscription_token: str, db: Session = Depends(get_db)):
    """Confirm a pending subscription using the emailed token"""
    try:
        token = parse_subscription_token(subscription_token)
    except ValueError as e:
        raise HTTPException(400, str(e))

    try:
        subscriber = confirm_subscriber(db, token)
        if subscriber is None:
            raise HTTPException(401, "Unknown subscription token")
        db.commit()
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Subscription confirmation failed: {e}", exc_info=True)
        raise HTTPException(500, "Failed to confirm the subscription")

    return {"status": subscriber.status}
