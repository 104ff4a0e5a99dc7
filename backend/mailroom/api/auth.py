"""Auth API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from mailroom.core.security import set_auth_cookie
from mailroom.db.session import get_db
from mailroom.schemas.auth import LoginRequest
from mailroom.services.auth_service import login_user

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(request_data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Login an administrator"""
    try:
        result = login_user(request_data.username, request_data.password, db)
    except ValueError as e:
        raise HTTPException(401, str(e))
    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        raise HTTPException(500, "Login failed")

    set_auth_cookie(response, result["session_id"])
    return {"user": result["user"]}
