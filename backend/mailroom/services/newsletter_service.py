"""Newsletter service - create issues and fan them out to the delivery queue"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy import String, insert, literal, select
from sqlalchemy.orm import Session

from mailroom.models.newsletter_issue import DeliveryTask, NewsletterIssue
from mailroom.models.subscription import STATUS_CONFIRMED, Subscription

logger = logging.getLogger(__name__)


def insert_newsletter_issue(db: Session, title: str, text_content: str, html_content: str) -> str:
    """Insert a new issue and return its id (not committed)"""
    newsletter_issue_id = str(uuid.uuid4())
    db.execute(
        insert(NewsletterIssue.__table__).values(
            newsletter_issue_id=newsletter_issue_id,
            title=title,
            text_content=text_content,
            html_content=html_content,
            published_at=datetime.now(timezone.utc),
        )
    )
    return newsletter_issue_id


def enqueue_delivery_tasks(db: Session, newsletter_issue_id: str) -> int:
    """Queue one delivery task per currently confirmed subscriber (not committed)

    A single INSERT ... SELECT, so the recipient set is exactly the confirmed
    subscribers visible to this transaction.

    Returns:
        Number of tasks enqueued
    """
    confirmed_emails = select(
        literal(newsletter_issue_id, String),
        Subscription.email,
    ).where(Subscription.status == STATUS_CONFIRMED)

    result = db.execute(
        insert(DeliveryTask.__table__).from_select(
            ["newsletter_issue_id", "subscriber_email"],
            confirmed_emails,
        )
    )
    return result.rowcount


def publish_issue(db: Session, title: str, text_content: str, html_content: str) -> Tuple[str, int]:
    """Create an issue and its delivery tasks in the caller's transaction

    Nothing is committed here: the caller commits together with the idempotency
    record, or rolls everything back.

    Returns:
        (newsletter_issue_id, number of delivery tasks)
    """
    newsletter_issue_id = insert_newsletter_issue(db, title, text_content, html_content)
    task_count = enqueue_delivery_tasks(db, newsletter_issue_id)

    logger.info(f"Published newsletter issue {newsletter_issue_id} with {task_count} delivery tasks")
    return newsletter_issue_id, task_count
