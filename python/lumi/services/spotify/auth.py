"""Spotify account linking and token lifecycle.

Tokens are stored per username. ``get_access_token`` refreshes an expired
access token before use, and ``call_api`` retries exactly once after a
refresh when Spotify rejects a token that looked valid. No other retries.
"""

import base64
import html
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from lumi.db.models import USERNAME_MAX_LENGTH, SpotifyToken
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from lumi.logging import get_logger, set_username
from lumi.services.spotify.client import (
    SpotifyClient,
    SpotifyError,
    SpotifyUnauthorizedError,
    TokenGrant,
)
from lumi.services.validation import require_username

logger = get_logger(__name__)

NOT_CONNECTED = "Spotify account not connected"


# =============================================================================
# OAuth state
# =============================================================================


def encode_state(username: str) -> str:
    """Opaque OAuth state carrying the username through the redirect."""
    return base64.urlsafe_b64encode(json.dumps({"username": username}).encode()).decode()


def decode_state(state: str) -> str | None:
    """Username from an OAuth state, or None when it cannot be decoded."""
    try:
        padded = state + "=" * (-len(state) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except (ValueError, TypeError):
        return None
    username = data.get("username") if isinstance(data, dict) else None
    if not isinstance(username, str):
        return None
    username = username.strip()
    return username if 0 < len(username) <= USERNAME_MAX_LENGTH else None


def login_url(client: SpotifyClient, username: str | None) -> str:
    """Authorization URL for ``username``."""
    username = require_username(username)
    return client.authorize_url(encode_state(username))


# =============================================================================
# Callback
# =============================================================================


@dataclass(frozen=True)
class CallbackPage:
    """HTML page shown in the popup after the Spotify redirect."""

    status_code: int
    title: str
    message: str

    def to_html(self) -> str:
        title = html.escape(self.title)
        message = html.escape(self.message)
        return (
            "<!DOCTYPE html>\n"
            f"<html><head><title>{title}</title></head>"
            '<body style="font-family: sans-serif; text-align: center; padding: 40px;">'
            f"<h1>{title}</h1><p>{message}</p>"
            "<p>You can close this window and return to the chat.</p>"
            "<script>setTimeout(function () { window.close(); }, 3000);</script>"
            "</body></html>"
        )


def store_grant(
    db: Session,
    username: str,
    grant: TokenGrant,
    now: datetime,
    spotify_user_id: str | None = None,
) -> None:
    """Upsert tokens, keeping the old refresh token when none is returned."""
    expires_at = now + timedelta(seconds=grant.expires_in)
    values: dict[str, Any] = {
        "username": username,
        "access_token": grant.access_token,
        "refresh_token": grant.refresh_token or "",
        "expires_at": expires_at,
        "spotify_user_id": spotify_user_id,
        "created_at": now,
        "updated_at": now,
    }
    updates: dict[str, Any] = {
        "access_token": grant.access_token,
        "expires_at": expires_at,
        "updated_at": now,
    }
    if grant.refresh_token:
        updates["refresh_token"] = grant.refresh_token
    if spotify_user_id:
        updates["spotify_user_id"] = spotify_user_id

    stmt = insert_for(db, SpotifyToken).values(**values)
    stmt = stmt.on_conflict_do_update(index_elements=[SpotifyToken.username], set_=updates)
    with transaction(db):
        db.execute(stmt)


def handle_callback(
    db: Session,
    client: SpotifyClient,
    code: str | None,
    state: str | None,
    error: str | None = None,
    now: datetime | None = None,
) -> CallbackPage:
    """Finish the OAuth dance and link the Spotify account."""
    if error:
        return CallbackPage(400, "Spotify Connection Failed", f"Authorization error: {error}")
    if not code or not state:
        return CallbackPage(
            400, "Spotify Connection Failed", "Missing authorization code or state"
        )

    username = decode_state(state)
    if username is None:
        return CallbackPage(400, "Spotify Connection Failed", "Invalid state parameter")
    set_username(username)
    now = now or utcnow()

    try:
        grant = client.exchange_code(code)
        profile = client.request("GET", "/me", grant.access_token) or {}
    except SpotifyError as e:
        logger.error("spotify_callback_failed", error=e.message, status_code=e.status_code)
        return CallbackPage(
            500, "Spotify Connection Failed", "Failed to connect Spotify account"
        )

    store_grant(db, username, grant, now, spotify_user_id=profile.get("id"))
    logger.info("spotify_connected", spotify_user_id=profile.get("id"))

    display_name = profile.get("display_name") or profile.get("id") or username
    return CallbackPage(200, "Spotify Connected!", f"Welcome, {display_name}!")


# =============================================================================
# Status / refresh / logout
# =============================================================================


def _get_token(db: Session, username: str) -> SpotifyToken | None:
    return db.scalar(
        select(SpotifyToken)
        .where(SpotifyToken.username == username)
        .execution_options(populate_existing=True)
    )


def get_status(db: Session, username: str | None, now: datetime | None = None) -> dict:
    """Whether ``username`` has a usable connection."""
    username = require_username(username)
    token = _get_token(db, username)
    connected = token is not None and token.expires_at > (now or utcnow())
    return {
        "connected": connected,
        "spotifyUserId": token.spotify_user_id if token is not None else None,
    }


def _refresh(db: Session, client: SpotifyClient, token: SpotifyToken, now: datetime) -> str:
    grant = client.refresh(token.refresh_token)
    store_grant(db, token.username, grant, now)
    logger.info("spotify_token_refreshed")
    return grant.access_token


def refresh_connection(
    db: Session, client: SpotifyClient, username: str | None, now: datetime | None = None
) -> None:
    """Force a refresh-token exchange."""
    username = require_username(username)
    token = _get_token(db, username)
    if token is None:
        raise NotFoundError(ApiErrorCode.E_SPOTIFY_TOKEN_NOT_FOUND, "No Spotify connection found")
    try:
        _refresh(db, client, token, now or utcnow())
    except SpotifyError as e:
        logger.warning("spotify_refresh_failed", error=e.message)
        raise InvalidRequestError(ApiErrorCode.E_SPOTIFY_ERROR, "Token refresh failed") from e


def logout(db: Session, username: str | None) -> None:
    """Forget the user's tokens."""
    username = require_username(username)
    with transaction(db):
        db.execute(delete(SpotifyToken).where(SpotifyToken.username == username))
    logger.info("spotify_disconnected", username=username)


# =============================================================================
# Authenticated calls
# =============================================================================


def _require_token(db: Session, username: str) -> SpotifyToken:
    token = _get_token(db, username)
    if token is None:
        raise InvalidRequestError(ApiErrorCode.E_SPOTIFY_NOT_CONNECTED, NOT_CONNECTED)
    return token


def _usable_token(
    db: Session, client: SpotifyClient, username: str, now: datetime
) -> tuple[str, bool]:
    """(access_token, refreshed) where ``refreshed`` means an exchange already happened."""
    token = _require_token(db, username)
    if token.expires_at > now:
        return token.access_token, False
    try:
        return _refresh(db, client, token, now), True
    except SpotifyError as e:
        raise InvalidRequestError(
            ApiErrorCode.E_SPOTIFY_ERROR, f"Spotify API error: {e.message}"
        ) from e


def get_access_token(
    db: Session, client: SpotifyClient, username: str, now: datetime | None = None
) -> str:
    """Access token for ``username``, refreshed first if it has expired.

    Raises:
        InvalidRequestError: No linked account, or the refresh failed.
    """
    access_token, _ = _usable_token(db, client, username, now or utcnow())
    return access_token


def call_api(
    db: Session,
    client: SpotifyClient,
    username: str,
    method: str,
    path: str,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Any:
    """Web API call on behalf of ``username``.

    At most one refresh-token exchange happens per call: either up front for an
    expired token, or after a 401 on a token that looked valid.

    Raises:
        InvalidRequestError: Not connected, or Spotify reported an error.
    """
    now = now or utcnow()
    access_token, refreshed = _usable_token(db, client, username, now)
    try:
        try:
            return client.request(method, path, access_token, params=params, json=json)
        except SpotifyUnauthorizedError:
            if refreshed:
                raise
            access_token = _refresh(db, client, _require_token(db, username), now)
            return client.request(method, path, access_token, params=params, json=json)
    except SpotifyError as e:
        raise InvalidRequestError(
            ApiErrorCode.E_SPOTIFY_ERROR, f"Spotify API error: {e.message}"
        ) from e
