"""NewsletterIssue and DeliveryTask models"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from datetime import datetime, timezone
from mailroom.models.base import Base


class NewsletterIssue(Base):
    """A published newsletter issue. Written once, never updated."""
    __tablename__ = "newsletter_issues"

    newsletter_issue_id = Column(String(36), primary_key=True)  # uuid4
    title = Column(Text, nullable=False)
    text_content = Column(Text, nullable=False)
    html_content = Column(Text, nullable=False)
    published_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class DeliveryTask(Base):
    """Pending delivery of one issue to one subscriber.

    Rows are scanned with SELECT ... FOR UPDATE SKIP LOCKED by the delivery worker
    and deleted once processed.
    """
    __tablename__ = "issue_delivery_queue"

    newsletter_issue_id = Column(
        String(36),
        ForeignKey("newsletter_issues.newsletter_issue_id"),
        primary_key=True
    )
    subscriber_email = Column(String(255), primary_key=True)
