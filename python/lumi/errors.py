"""Error codes and the exceptions services raise.

Every code maps to one HTTP status: 400 for validation, 403 when the caller
is not a participant or not the host, 404 for missing rows and blobs, 405 for
unsupported methods and 500 for everything unexpected.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Machine-readable ``code`` field of every error body."""

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_NOT_A_PARTICIPANT = "E_NOT_A_PARTICIPANT"
    E_NOT_SESSION_HOST = "E_NOT_SESSION_HOST"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_SESSION_NOT_FOUND = "E_SESSION_NOT_FOUND"
    E_IMAGE_NOT_FOUND = "E_IMAGE_NOT_FOUND"
    E_AVATAR_NOT_FOUND = "E_AVATAR_NOT_FOUND"
    E_SPOTIFY_TOKEN_NOT_FOUND = "E_SPOTIFY_TOKEN_NOT_FOUND"

    # Method errors (405)
    E_METHOD_NOT_ALLOWED = "E_METHOD_NOT_ALLOWED"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_USERNAME_INVALID = "E_USERNAME_INVALID"
    E_MESSAGE_INVALID = "E_MESSAGE_INVALID"
    E_REPLY_INVALID = "E_REPLY_INVALID"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_INVALID_FILE_TYPE = "E_INVALID_FILE_TYPE"
    E_INVALID_ACTION = "E_INVALID_ACTION"
    E_SPOTIFY_NOT_CONNECTED = "E_SPOTIFY_NOT_CONNECTED"
    E_SPOTIFY_ERROR = "E_SPOTIFY_ERROR"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500


ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_A_PARTICIPANT: 403,
    ApiErrorCode.E_NOT_SESSION_HOST: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_SESSION_NOT_FOUND: 404,
    ApiErrorCode.E_IMAGE_NOT_FOUND: 404,
    ApiErrorCode.E_AVATAR_NOT_FOUND: 404,
    ApiErrorCode.E_SPOTIFY_TOKEN_NOT_FOUND: 404,
    ApiErrorCode.E_METHOD_NOT_ALLOWED: 405,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_USERNAME_INVALID: 400,
    ApiErrorCode.E_MESSAGE_INVALID: 400,
    ApiErrorCode.E_REPLY_INVALID: 400,
    ApiErrorCode.E_FILE_TOO_LARGE: 400,
    ApiErrorCode.E_INVALID_FILE_TYPE: 400,
    ApiErrorCode.E_INVALID_ACTION: 400,
    ApiErrorCode.E_SPOTIFY_NOT_CONNECTED: 400,
    ApiErrorCode.E_SPOTIFY_ERROR: 400,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_STORAGE_ERROR: 500,
}


class ApiError(Exception):
    """Raised by services; rendered as ``{"error", "code"}`` with the mapped status.

    Subclasses only supply defaults, so ``NotFoundError()`` is a plain 404.
    """

    default_code = ApiErrorCode.E_INTERNAL
    default_message = "Internal server error"

    def __init__(self, code: ApiErrorCode | None = None, message: str | None = None):
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_CODE_TO_STATUS.get(self.code, 500)


class InvalidRequestError(ApiError):
    default_code = ApiErrorCode.E_INVALID_REQUEST
    default_message = "Invalid request"


class ForbiddenError(ApiError):
    default_code = ApiErrorCode.E_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ApiError):
    default_code = ApiErrorCode.E_NOT_FOUND
    default_message = "Not found"
