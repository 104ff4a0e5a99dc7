"""Middleware configuration for FastAPI application"""
import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from mailroom.core.security import SESSION_COOKIE, log_api_access

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


async def access_log_middleware(request: Request, call_next):
    """Log one access line per request"""
    session_id = request.cookies.get(SESSION_COOKIE)
    status_code = 500
    error = None

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as e:
        error = str(e)
        security_logger.error(f"Request failed in middleware: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
