"""X-Request-ID middleware: correlation IDs and one access log line per request.

A client-supplied ID is kept when it is at most 128 bytes of letters, digits,
dots, hyphens and underscores (UUIDs are lowercased). Anything else is
replaced with a fresh UUID4. The ID is bound to the log context for the whole
request, stored on ``request.state.request_id``, echoed in the response
header and copied into error bodies by ``lumi.responses``.

Written as plain ASGI so the log context it binds is the one the route and
exception handlers run in. Register it after every other middleware so it
wraps them all, CORS preflights included.
"""

import re
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from lumi.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_SAFE_CHARS = re.compile(r"[A-Za-z0-9._-]+")
_UUID = re.compile(r"[0-9a-fA-F]{8}(?:-[0-9a-fA-F]{4}){3}-[0-9a-fA-F]{12}")

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    if not value or len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return False
    return _SAFE_CHARS.fullmatch(value) is not None


def normalize_request_id(value: str) -> str:
    return value.lower() if _UUID.fullmatch(value) else value


def resolve_request_id(incoming: str | None) -> str:
    """Keep a trustworthy incoming ID, otherwise mint a new one."""
    if incoming and is_valid_request_id(incoming):
        return normalize_request_id(incoming)
    return str(uuid.uuid4())


class RequestIDMiddleware:
    def __init__(self, app: ASGIApp, log_requests: bool = True):
        self.app = app
        self.log_requests = log_requests

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = resolve_request_id(Headers(scope=scope).get(REQUEST_ID_HEADER))
        scope.setdefault("state", {})["request_id"] = request_id
        set_request_context(request_id, path=scope["path"], method=scope["method"])

        started = time.monotonic()
        status_code = 500

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception:
            logger.exception("request_failed")
            raise
        else:
            if self.log_requests:
                logger.info(
                    "request_completed",
                    status_code=status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
        finally:
            clear_request_context()
