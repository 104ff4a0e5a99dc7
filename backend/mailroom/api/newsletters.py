"""Newsletter publishing API routes"""
import logging
import uuid

import redis
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from mailroom.core.metrics import (
    delivery_tasks_enqueued_counter, idempotent_replays_counter, issues_published_counter
)
from mailroom.core.security import require_auth, require_session_id
from mailroom.db.redis import add_flash_message, pop_flash_messages
from mailroom.db.session import get_db
from mailroom.schemas.newsletters import PublishNewsletterRequest
from mailroom.services.idempotency_service import (
    ReturnSavedResponse, parse_idempotency_key, save_response, try_processing
)
from mailroom.services.newsletter_service import publish_issue

router = APIRouter(prefix="/admin/newsletters", tags=["newsletters"])
logger = logging.getLogger(__name__)

PUBLISH_SUCCESS_MESSAGE = "Successfully published a newsletter."


def flash_published(session_id: str) -> None:
    """Queue the success message; the publish has already committed, so Redis errors are only logged"""
    try:
        add_flash_message(session_id, "info", PUBLISH_SUCCESS_MESSAGE)
    except redis.RedisError as e:
        logger.warning(f"Could not queue publish flash message: {e}")


@router.get("")
def publish_form(session_id: str = Depends(require_session_id)):
    """Fresh idempotency key for the next publish, plus pending flash messages"""
    return {
        "idempotency_key": str(uuid.uuid4()),
        "messages": pop_flash_messages(session_id),
    }


@router.post("")
def publish_newsletter(
    request_data: PublishNewsletterRequest,
    user_id: int = Depends(require_auth),
    session_id: str = Depends(require_session_id),
    db: Session = Depends(get_db)
):
    """Publish an issue to every confirmed subscriber

    The idempotency claim, the issue, its delivery tasks and the saved response
    commit together. Retrying with the same key replays the saved response.
    """
    try:
        idempotency_key = parse_idempotency_key(request_data.idempotency_key)
    except ValueError as e:
        raise HTTPException(400, str(e))

    try:
        next_action = try_processing(db, idempotency_key, user_id)
        if isinstance(next_action, ReturnSavedResponse):
            db.rollback()
            idempotent_replays_counter.inc()
            flash_published(session_id)
            return next_action.response

        newsletter_issue_id, task_count = publish_issue(
            db,
            request_data.title,
            request_data.text_content,
            request_data.html_content,
        )
        response = RedirectResponse("/admin/newsletters", status_code=303)
        save_response(db, idempotency_key, user_id, response)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to publish newsletter for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to publish the newsletter")

    issues_published_counter.inc()
    delivery_tasks_enqueued_counter.inc(task_count)
    flash_published(session_id)
    logger.info(f"User {user_id} published issue {newsletter_issue_id} to {task_count} subscribers")
    return response
