"""Subscription model"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from mailroom.models.base import Base

STATUS_PENDING_CONFIRMATION = "pending_confirmation"
STATUS_CONFIRMED = "confirmed"


class Subscription(Base):
    """Newsletter subscriber"""
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True)  # uuid4
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(256), nullable=False)
    status = Column(String(50), nullable=False, default=STATUS_PENDING_CONFIRMATION, index=True)  # 'pending_confirmation', 'confirmed'
    subscribed_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationship
    tokens = relationship("SubscriptionToken", back_populates="subscriber", cascade="all, delete-orphan")


class SubscriptionToken(Base):
    """One-time token emailed to a subscriber to confirm their address"""
    __tablename__ = "subscription_tokens"

    subscription_token = Column(String(25), primary_key=True)
    subscriber_id = Column(String(36), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    subscriber = relationship("Subscription", back_populates="tokens")
