"""Redis client for session management and flash messages"""
import redis
import logging
import secrets
from typing import List, Optional
from mailroom.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


# Session TTL (30 days)
SESSION_TTL = 30 * 24 * 60 * 60

# Flash messages live until read, but never longer than a day
FLASH_TTL = 24 * 60 * 60


def create_session(user_id: int) -> str:
    """Create a new session for user_id and return its id"""
    session_id = secrets.token_urlsafe(32)
    set_session(session_id, user_id)
    return session_id


def set_session(session_id: str, user_id: int) -> None:
    """Store session in Redis"""
    key = f"session:{session_id}"
    get_redis_client().setex(key, SESSION_TTL, user_id)


def get_session(session_id: str) -> Optional[int]:
    """Get user_id from session"""
    key = f"session:{session_id}"
    user_id = get_redis_client().get(key)
    return int(user_id) if user_id else None


def delete_session(session_id: str) -> None:
    """Delete session and its pending flash messages from Redis"""
    client = get_redis_client()
    client.delete(f"session:{session_id}")
    client.delete(f"flash:{session_id}")


def add_flash_message(session_id: str, level: str, message: str) -> None:
    """Queue a one-shot message for the next page the session loads"""
    key = f"flash:{session_id}"
    client = get_redis_client()
    client.rpush(key, f"{level}:{message}")
    client.expire(key, FLASH_TTL)


def pop_flash_messages(session_id: str) -> List[dict]:
    """Return and clear all queued flash messages, oldest first"""
    key = f"flash:{session_id}"
    client = get_redis_client()
    pipe = client.pipeline()
    pipe.lrange(key, 0, -1)
    pipe.delete(key)
    raw_messages, _ = pipe.execute()

    messages = []
    for raw in raw_messages:
        level, _, message = raw.partition(":")
        messages.append({"level": level, "message": message})
    return messages
