"""Admin API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from mailroom.core.security import SESSION_COOKIE, require_auth, require_session_id
from mailroom.db.redis import add_flash_message
from mailroom.db.session import get_db
from mailroom.schemas.auth import ChangePasswordRequest
from mailroom.services.auth_service import (
    change_password_with_validation, get_user_by_id, logout_user
)

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/dashboard")
def dashboard(user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    """Current administrator"""
    user = get_user_by_id(user_id, db)
    if not user:
        raise HTTPException(404, "User not found")
    return {"username": user.username}


@router.post("/password")
def change_password(
    request_data: ChangePasswordRequest,
    user_id: int = Depends(require_auth),
    session_id: str = Depends(require_session_id),
    db: Session = Depends(get_db)
):
    """Change the current administrator's password"""
    try:
        result = change_password_with_validation(
            user_id,
            request_data.current_password,
            request_data.new_password,
            request_data.new_password_check,
            db
        )
    except ValueError as e:
        db.rollback()
        add_flash_message(session_id, "error", str(e))
        raise HTTPException(400, str(e))
    except Exception as e:
        db.rollback()
        logger.error(f"Error changing password for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to change password")

    add_flash_message(session_id, "info", result["message"])
    return result


@router.post("/logout")
def logout(session_id: str = Depends(require_session_id)):
    """Logout and send the browser back to the login page"""
    logout_user(session_id)
    response = RedirectResponse("/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response
