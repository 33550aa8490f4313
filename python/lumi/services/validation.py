"""Input validation shared by chat handlers.

Usernames are self-declared: they are trimmed, required, and capped at 50
characters everywhere. Failures raise InvalidRequestError with the exact
message the client displays.
"""

from datetime import datetime

from lumi.db.models import MESSAGE_MAX_LENGTH, USERNAME_MAX_LENGTH
from lumi.db.types import as_utc
from lumi.errors import ApiErrorCode, InvalidRequestError

USERNAME_REQUIRED = "Username is required"
USERNAME_TOO_LONG = f"Username must be {USERNAME_MAX_LENGTH} characters or less"
MESSAGE_REQUIRED = "Message is required"
MESSAGE_TOO_LONG = f"Message must be {MESSAGE_MAX_LENGTH} characters or less"
REPLY_ID_INVALID = "Reply ID must be a valid positive integer"
REPLY_INCOMPLETE = "Reply requires both username and preview"


def clean(value: str | None) -> str:
    """Trim a possibly-missing string."""
    return (value or "").strip()


def require_username(value: str | None, message: str = USERNAME_REQUIRED) -> str:
    """Return the trimmed username or raise if missing/oversized."""
    username = clean(value)
    if not username:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, message)
    if len(username) > USERNAME_MAX_LENGTH:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, USERNAME_TOO_LONG)
    return username


def optional_username(value: str | None) -> str | None:
    """Trimmed username, or None when absent; oversized names still raise."""
    return require_username(value) if clean(value) else None


def validate_message_fields(username: str | None, message: str | None) -> tuple[str, str]:
    """Validate a (username, message) pair in the order the client expects.

    Presence is checked for both fields before any length check.
    """
    username = clean(username)
    message = clean(message)

    if not username:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, USERNAME_REQUIRED)
    if not message:
        raise InvalidRequestError(ApiErrorCode.E_MESSAGE_INVALID, MESSAGE_REQUIRED)
    if len(username) > USERNAME_MAX_LENGTH:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, USERNAME_TOO_LONG)
    if len(message) > MESSAGE_MAX_LENGTH:
        raise InvalidRequestError(ApiErrorCode.E_MESSAGE_INVALID, MESSAGE_TOO_LONG)

    return username, message


def _decimal(value: str | int) -> int | None:
    """Plain ASCII digits only; Unicode digits such as "²" are rejected."""
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _positive_int(value: int | str) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    number = _decimal(value)
    return number if number else None


def parse_reply(
    reply_to_id: int | str | None,
    reply_to_username: str | None,
    reply_preview: str | None,
) -> tuple[int | None, str | None, str | None]:
    """Validate reply metadata, which is all-or-nothing.

    Returns:
        (reply_to_id, reply_to_username, reply_preview), all None for a plain message.
    """
    reply_username = clean(reply_to_username) or None
    preview = clean(reply_preview) or None

    if reply_to_id is None or reply_to_id == "":
        if reply_username or preview:
            raise InvalidRequestError(ApiErrorCode.E_REPLY_INVALID, REPLY_ID_INVALID)
        return None, None, None

    reply_id = _positive_int(reply_to_id)
    if reply_id is None:
        raise InvalidRequestError(ApiErrorCode.E_REPLY_INVALID, REPLY_ID_INVALID)
    if not reply_username or not preview:
        raise InvalidRequestError(ApiErrorCode.E_REPLY_INVALID, REPLY_INCOMPLETE)

    return reply_id, reply_username, preview


def parse_since_id(value: str | int | None) -> int | None:
    """Parse a sinceId cursor; absent means "no cursor"."""
    if value is None or value == "":
        return None
    since_id = _decimal(value)
    if since_id is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "sinceId must be a non-negative integer"
        )
    return since_id


def parse_since(value: str | None) -> datetime | None:
    """Parse the ISO-8601 ``since`` fallback cursor."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "since must be an ISO-8601 timestamp"
        ) from None
    return as_utc(parsed)


def parse_id(value: str | int | None, name: str) -> int | None:
    """Parse an optional positive integer id from a query string."""
    if value is None or value == "":
        return None
    parsed = _decimal(value)
    if not parsed:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"{name} must be a positive integer"
        )
    return parsed
