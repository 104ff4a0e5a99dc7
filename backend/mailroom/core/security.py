"""Security dependencies and API access logging"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import HTTPException, Request, Response
from mailroom.db.redis import get_session
from mailroom.core.config import settings

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

SESSION_COOKIE = "session_id"


def require_auth(request: Request) -> int:
    """Dependency: Require authentication, return user_id"""
    session_id = request.cookies.get(SESSION_COOKIE)

    if not session_id:
        raise HTTPException(401, "Not authenticated. Please log in.")

    user_id = get_session(session_id)
    if not user_id:
        security_logger.info(f"Rejected expired session - Path: {request.url.path}")
        raise HTTPException(401, "Session expired. Please log in again.")

    return user_id


def require_session_id(request: Request) -> str:
    """Dependency: the raw session id of an authenticated request"""
    require_auth(request)
    return request.cookies[SESSION_COOKIE]


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log detailed API access information"""
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"

    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": str(request.url.query) if request.url.query else None,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": client_ip,
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


def set_auth_cookie(response: Response, session_id: str) -> None:
    """Set the session cookie on a response"""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=60 * 60 * 24 * 30  # 30 days, matches SESSION_TTL
    )
