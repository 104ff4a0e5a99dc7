"""Idempotency service - claim request keys, save responses and replay them

A publish request first claims its (user_id, idempotency_key) pair by inserting an
empty IdempotencyRecord. The claim, the work it guards and the saved response are
written in the caller's transaction, so a concurrent duplicate blocks on the
primary key until the first request commits (and then replays its response) or
rolls back (and then becomes the writer itself).
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from fastapi import Response
from sqlalchemy import and_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from mailroom.models.idempotency import IdempotencyRecord

logger = logging.getLogger("idempotency")

MAX_IDEMPOTENCY_KEY_LENGTH = 50

# RFC 9110 token characters
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_HEADER_VALUE_BYTES = (b"\r", b"\n", b"\x00")

_idempotency_table = IdempotencyRecord.__table__


@dataclass
class StartProcessing:
    """The key was claimed by this request: do the work, then save the response"""


@dataclass
class ReturnSavedResponse:
    """The key was already used: send this response back unchanged"""
    response: Response


NextAction = Union[StartProcessing, ReturnSavedResponse]


def parse_idempotency_key(value: str) -> str:
    """Validate a client supplied idempotency key

    Raises:
        ValueError: If the key is empty, longer than 50 characters or contains
            anything but printable ASCII
    """
    if not value:
        raise ValueError("The idempotency key cannot be empty")
    if len(value) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValueError(
            f"The idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters long"
        )
    if any(not (0x20 <= ord(c) < 0x7F) for c in value):
        raise ValueError("The idempotency key must only contain printable ASCII characters")
    return value


def _dialect_insert(db: Session):
    """INSERT construct supporting ON CONFLICT DO NOTHING for the bound database"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect for idempotency claims: {dialect}")


def _encode_header(name: bytes, value: bytes) -> Optional[List[str]]:
    """Convert a raw header pair to its stored form, None if it cannot round-trip"""
    decoded_name = name.decode("latin-1")
    if not _HEADER_NAME_RE.match(decoded_name):
        return None
    if any(b in value for b in _FORBIDDEN_HEADER_VALUE_BYTES):
        return None
    return [decoded_name, value.decode("latin-1")]


def _decode_header(pair) -> Optional[Tuple[bytes, bytes]]:
    """Convert a stored header pair back to raw bytes, None if it is malformed"""
    try:
        name, value = pair
        raw_name = name.encode("latin-1")
        raw_value = value.encode("latin-1")
    except (TypeError, ValueError, AttributeError):
        return None
    if _encode_header(raw_name, raw_value) is None:
        return None
    return raw_name, raw_value


def get_saved_response(db: Session, idempotency_key: str, user_id: int) -> Optional[Response]:
    """Rebuild the response saved for (user_id, idempotency_key)

    Returns:
        The response with its original status, header order and body, or None if
        no completed response has been saved for the key
    """
    record = db.execute(
        select(IdempotencyRecord)
        .where(
            IdempotencyRecord.user_id == user_id,
            IdempotencyRecord.idempotency_key == idempotency_key,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if record is None or record.response_status_code is None:
        return None

    raw_headers = []
    for pair in record.response_headers or []:
        decoded = _decode_header(pair)
        if decoded is None:
            logger.error(f"Dropping invalid saved header {pair!r} for user {user_id}, key {idempotency_key}")
            continue
        raw_headers.append(decoded)

    response = Response(content=record.response_body or b"", status_code=record.response_status_code)
    # Replace the generated headers so the replay matches the original byte for byte
    response.raw_headers = raw_headers
    return response


def try_processing(db: Session, idempotency_key: str, user_id: int) -> NextAction:
    """Claim (user_id, idempotency_key) or fetch the response saved for it

    Runs inside the caller's transaction; the claim only becomes visible to other
    transactions when the caller commits.

    Raises:
        RuntimeError: If the key was claimed but no response has been saved for it
    """
    statement = (
        _dialect_insert(db)(_idempotency_table)
        .values(
            user_id=user_id,
            idempotency_key=idempotency_key,
            created_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id", "idempotency_key"])
    )
    inserted = db.execute(statement).rowcount

    if inserted > 0:
        logger.debug(f"Claimed idempotency key {idempotency_key} for user {user_id}")
        return StartProcessing()

    saved_response = get_saved_response(db, idempotency_key, user_id)
    if saved_response is None:
        logger.error(
            f"Idempotency key {idempotency_key} for user {user_id} is claimed "
            f"but has no saved response"
        )
        raise RuntimeError("We expected a saved response, we didn't find it")

    logger.info(f"Replaying saved response for user {user_id}, key {idempotency_key}")
    return ReturnSavedResponse(response=saved_response)


def save_response(db: Session, idempotency_key: str, user_id: int, response: Response) -> Response:
    """Persist a response against its claimed key and hand it back unchanged

    Headers that could not be replayed faithfully are skipped with a warning.

    Raises:
        RuntimeError: If the response body is streamed and cannot be captured
    """
    body = getattr(response, "body", None)
    if body is None:
        raise RuntimeError("Cannot save a streaming response for idempotent replay")

    header_pairs = []
    for name, value in response.raw_headers:
        pair = _encode_header(name, value)
        if pair is None:
            logger.warning(f"Not saving invalid header {name!r} for user {user_id}, key {idempotency_key}")
            continue
        header_pairs.append(pair)

    db.execute(
        update(_idempotency_table)
        .where(and_(
            _idempotency_table.c.user_id == user_id,
            _idempotency_table.c.idempotency_key == idempotency_key,
        ))
        .values(
            response_status_code=response.status_code,
            response_headers=header_pairs,
            response_body=bytes(body),
        )
    )
    return response
