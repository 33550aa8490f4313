"""Error bodies and the exception handlers that produce them.

Success payloads go out as-is, since the polling client reads bare arrays and
objects. Every error shares one body:

    {"error": "<human message>", "code": "E_...", "request_id": "..."}

``request_id`` appears whenever the request-id middleware bound one. A 500
also carries the underlying error text in ``message``.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lumi.errors import ERROR_CODE_TO_STATUS, ApiError, ApiErrorCode
from lumi.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Framework-raised statuses (unknown route, wrong method) and the code each gets.
FRAMEWORK_CODES: dict[int, tuple[ApiErrorCode, str | None]] = {
    400: (ApiErrorCode.E_INVALID_REQUEST, None),
    403: (ApiErrorCode.E_FORBIDDEN, None),
    404: (ApiErrorCode.E_NOT_FOUND, None),
    405: (ApiErrorCode.E_METHOD_NOT_ALLOWED, "Method not allowed"),
}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Error body for ``code``; ``request_id`` defaults to the bound log context."""
    body: dict[str, Any] = {"error": message, "code": code.value}
    request_id = request_id or get_request_id()
    if request_id:
        body["request_id"] = request_id
    return body


def error_json(code: ApiErrorCode, message: str, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or ERROR_CODE_TO_STATUS.get(code, 500),
        content=error_response(code, message),
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_json(exc.code, exc.message, exc.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message = FRAMEWORK_CODES.get(exc.status_code, (ApiErrorCode.E_INTERNAL, None))
    return error_json(code, message or str(exc.detail or "An error occurred"), exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body parsing failures are 400s: undecodable JSON or fields of the wrong shape."""
    if any(error.get("type") == "json_invalid" for error in exc.errors()):
        return error_json(ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body")
    return error_json(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    content = error_response(ApiErrorCode.E_INTERNAL, "Internal server error")
    content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
