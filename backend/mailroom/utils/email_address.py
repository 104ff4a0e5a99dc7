"""Email address and subscriber name validation"""
from email_validator import EmailNotValidError, validate_email

MAX_SUBSCRIBER_NAME_LENGTH = 256
FORBIDDEN_NAME_CHARACTERS = frozenset('/()"<>\\{}')


def parse_email_address(value: str) -> str:
    """Validate an email address syntactically.

    Deliverability (DNS) is not checked: stored addresses are re-validated by the
    delivery worker right before sending and must not depend on network state.

    Raises:
        ValueError: If the address is not a valid email address
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{value!r} is not a valid subscriber email")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"{value} is not a valid subscriber email: {e}") from e
    return value


def parse_subscriber_name(value: str) -> str:
    """Validate a subscriber's display name

    Raises:
        ValueError: If the name is blank, too long or contains forbidden characters
    """
    is_blank = not value.strip()
    is_too_long = len(value) > MAX_SUBSCRIBER_NAME_LENGTH
    has_forbidden = any(c in FORBIDDEN_NAME_CHARACTERS for c in value)
    if is_blank or is_too_long or has_forbidden:
        raise ValueError(f"{value} is not a valid subscriber name")
    return value
