"""Authentication service - business logic for administrator accounts"""
import base64
import bcrypt
import hashlib
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from mailroom.models.user import User
from mailroom.core.metrics import login_attempts_counter
from mailroom.db.redis import create_session, delete_session

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

MIN_PASSWORD_LENGTH = 12
MAX_PASSWORD_LENGTH = 128

# Compared against when the username is unknown so both paths cost one bcrypt check
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt()).decode("utf-8")


def _bcrypt_input(password: str) -> bytes:
    """SHA-256 then base64, so passwords past bcrypt's 72 byte limit are hashed in full"""
    return base64.b64encode(hashlib.sha256(password.encode('utf-8')).digest())


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_bcrypt_input(password), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    if not password_hash or not password:
        return False
    return bcrypt.checkpw(_bcrypt_input(password), password_hash.encode('utf-8'))


def validate_password_strength(password: str) -> None:
    """Raises ValueError if the password is too short or too long"""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if len(password) >= MAX_PASSWORD_LENGTH:
        raise ValueError(f"New password must be less than {MAX_PASSWORD_LENGTH} characters.")


def create_user(username: str, password: str, db: Session) -> User:
    """Create an administrator account

    Raises:
        ValueError: If the username is taken
    """
    existing_user = db.query(User).filter(User.username == username).first()
    if existing_user:
        raise ValueError("Username already registered")

    user = User(username=username, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate_user(username: str, password: str, db: Session) -> Optional[User]:
    """Return the user if the credentials are valid, None otherwise"""
    user = db.query(User).filter(User.username == username).first()
    if not user:
        verify_password(password, _DUMMY_PASSWORD_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(user_id: int, db: Session) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()


def login_user(username: str, password: str, db: Session) -> Dict:
    """Validate credentials and open a session

    Raises:
        ValueError: If the credentials are invalid
    """
    user = authenticate_user(username, password, db)
    if not user:
        login_attempts_counter.labels(status="failure").inc()
        security_logger.warning(f"Failed login attempt for username {username!r}")
        raise ValueError("Authentication failed")

    session_id = create_session(user.id)
    login_attempts_counter.labels(status="success").inc()
    logger.info(f"User {user.id} logged in")
    return {
        "session_id": session_id,
        "user": {"id": user.id, "username": user.username},
    }


def logout_user(session_id: Optional[str]) -> None:
    """Forget a session"""
    if session_id:
        delete_session(session_id)


def change_password_with_validation(
    user_id: int,
    current_password: str,
    new_password: str,
    new_password_check: str,
    db: Session
) -> Dict:
    """Change a user's password

    Raises:
        ValueError: If the passwords differ, the current password is wrong, the new
            password is out of bounds, or the user no longer exists
    """
    if new_password != new_password_check:
        raise ValueError("You entered two different new passwords - the field values must match.")

    user = get_user_by_id(user_id, db)
    if not user:
        raise ValueError("User not found")

    if not verify_password(current_password, user.password_hash):
        raise ValueError("The current password is incorrect.")

    validate_password_strength(new_password)

    user.password_hash = hash_password(new_password)
    db.commit()
    security_logger.info(f"Password changed for user {user_id}")
    return {"message": "Your password has been changed."}
