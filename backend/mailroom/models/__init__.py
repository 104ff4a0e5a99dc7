"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from mailroom.models.base import Base
from mailroom.models.user import User
from mailroom.models.subscription import Subscription, SubscriptionToken
from mailroom.models.newsletter_issue import NewsletterIssue, DeliveryTask
from mailroom.models.idempotency import IdempotencyRecord

# Export all for convenience
__all__ = [
    "Base", "User", "Subscription", "SubscriptionToken",
    "NewsletterIssue", "DeliveryTask", "IdempotencyRecord"
]
