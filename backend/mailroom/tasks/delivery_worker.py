"""Background worker draining the issue delivery queue

Each iteration locks one queued (issue, recipient) row with
SELECT ... FOR UPDATE SKIP LOCKED, attempts a single send and deletes the row in
the same transaction. Any number of workers, in or out of process, can run
against the same database without processing a row twice.

Delivery is at-most-once: a failed send is logged and the task is dropped.
"""
import asyncio
import enum
import logging

import httpx
from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from mailroom.core.config import settings
from mailroom.core.metrics import deliveries_counter, worker_iterations_counter
from mailroom.db.session import SessionLocal
from mailroom.models.newsletter_issue import DeliveryTask, NewsletterIssue
from mailroom.services.email_service import EmailClient
from mailroom.utils.email_address import parse_email_address

logger = logging.getLogger(__name__)
delivery_logger = logging.getLogger("delivery")


class ExecutionOutcome(enum.Enum):
    TASK_COMPLETED = "task_completed"
    EMPTY_QUEUE = "empty_queue"


async def try_execute_task(
    email_client: EmailClient,
    session_factory: sessionmaker = SessionLocal
) -> ExecutionOutcome:
    """Process at most one delivery task

    Raises:
        RuntimeError: If the task references an issue that does not exist
        SQLAlchemyError: On database failures; the task stays queued
    """
    db = session_factory()
    try:
        task = db.execute(
            select(DeliveryTask).with_for_update(skip_locked=True).limit(1)
        ).scalar_one_or_none()

        if task is None:
            db.rollback()
            return ExecutionOutcome.EMPTY_QUEUE

        newsletter_issue_id = task.newsletter_issue_id
        subscriber_email = task.subscriber_email

        try:
            recipient = parse_email_address(subscriber_email)
        except ValueError as e:
            recipient = None
            deliveries_counter.labels(outcome="invalid_email").inc()
            delivery_logger.error(
                f"Skipping a confirmed subscriber of issue {newsletter_issue_id}. "
                f"Their stored contact details are invalid: {e}"
            )

        if recipient is not None:
            issue = db.get(NewsletterIssue, newsletter_issue_id)
            if issue is None:
                raise RuntimeError(
                    f"Delivery task references missing newsletter issue {newsletter_issue_id}"
                )

            try:
                await email_client.send_email(
                    recipient,
                    issue.title,
                    issue.html_content,
                    issue.text_content,
                )
                deliveries_counter.labels(outcome="sent").inc()
                delivery_logger.info(f"Delivered issue {newsletter_issue_id} to {recipient}")
            except Exception as e:
                # Any send error drops the task, not only provider failures
                deliveries_counter.labels(outcome="send_failed").inc()
                delivery_logger.error(
                    f"Failed to deliver issue {newsletter_issue_id} to {recipient}. Skipping: {e}",
                    exc_info=not isinstance(e, httpx.HTTPError)
                )

        db.execute(
            delete(DeliveryTask.__table__).where(
                DeliveryTask.__table__.c.newsletter_issue_id == newsletter_issue_id,
                DeliveryTask.__table__.c.subscriber_email == subscriber_email,
            )
        )
        db.commit()
        return ExecutionOutcome.TASK_COMPLETED
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()


async def worker_loop(email_client: EmailClient, session_factory: sessionmaker = SessionLocal) -> None:
    """Drain the queue forever

    Loops immediately after a completed task, sleeps DELIVERY_IDLE_BACKOFF_SECONDS
    when the queue is empty and DELIVERY_ERROR_BACKOFF_SECONDS after an error.
    """
    logger.info("Starting issue delivery worker")

    while True:
        try:
            outcome = await try_execute_task(email_client, session_factory)
        except Exception as e:
            worker_iterations_counter.labels(outcome="error").inc()
            logger.error(f"Error in delivery worker loop: {e}", exc_info=True)
            await asyncio.sleep(settings.DELIVERY_ERROR_BACKOFF_SECONDS)
            continue

        worker_iterations_counter.labels(outcome=outcome.value).inc()
        if outcome is ExecutionOutcome.EMPTY_QUEUE:
            await asyncio.sleep(settings.DELIVERY_IDLE_BACKOFF_SECONDS)


async def run_worker_until_stopped() -> None:
    """Run the delivery worker with clients built from settings"""
    email_client = EmailClient.from_settings()
    try:
        await worker_loop(email_client, SessionLocal)
    finally:
        await email_client.aclose()
