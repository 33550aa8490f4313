"""Pure ASGI CORS middleware for the browser client.

The chat front end is served from arbitrary origins and carries no
credentials, so every response allows any origin. Preflight (OPTIONS)
requests are answered here with 200 and an empty body, before routing, so
handlers never see them and unknown paths still preflight cleanly.

Written as pure ASGI rather than BaseHTTPMiddleware so blob responses are
passed through unbuffered.
"""

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOW_HEADERS = "Content-Type"

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": ALLOW_METHODS,
    "access-control-allow-headers": ALLOW_HEADERS,
}


class CORSMiddleware:
    """Inject permissive CORS headers and short-circuit preflight requests."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, content=b"", headers=CORS_HEADERS)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
                headers.append("access-control-expose-headers", "X-Request-ID")
            await send(message)

        await self.app(scope, receive, send_with_cors)
