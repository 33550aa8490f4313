"""Test helpers for request payloads and error assertions."""

import base64

# PNG signature plus padding; content is never decoded
TINY_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


def b64(data: bytes) -> str:
    """Base64 text as the browser client sends it."""
    return base64.b64encode(data).decode("ascii")


def data_url(data: bytes, content_type: str = "image/png") -> str:
    """``data:`` URL form some clients send instead of bare base64."""
    return f"data:{content_type};base64,{b64(data)}"


def assert_error(response, status_code: int, message: str, code: str | None = None) -> None:
    """Assert an error response has the shared ``{error, code}`` shape."""
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["error"] == message
    if code is not None:
        assert body["code"] == code
