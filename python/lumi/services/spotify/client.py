"""Thin Spotify Accounts + Web API client over a shared httpx.Client.

The client is stateless with respect to users: callers pass the access token
for each Web API call. Token persistence and refresh-on-expiry live in
``lumi.services.spotify.auth``.

Error contract:
- Non-2xx responses raise SpotifyError carrying the provider's message.
- 401 from the Web API raises SpotifyUnauthorizedError so callers can refresh
  once and retry.
- Transport failures (timeouts, connection errors) raise SpotifyError.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from lumi.logging import get_logger

logger = get_logger(__name__)

ACCOUNTS_URL = "https://accounts.spotify.com"
API_URL = "https://api.spotify.com/v1"

SCOPES = (
    "streaming",
    "user-read-email",
    "user-read-private",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
    "playlist-read-collaborative",
)


class SpotifyError(Exception):
    """A Spotify call failed.

    Attributes:
        message: Provider message (or transport error text)
        status_code: HTTP status from Spotify, None for transport failures
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SpotifyUnauthorizedError(SpotifyError):
    """The access token was rejected (401)."""


@dataclass(frozen=True)
class TokenGrant:
    """Result of a code exchange or refresh.

    Attributes:
        access_token: Bearer token for Web API calls
        refresh_token: New refresh token, None when Spotify keeps the old one
        expires_in: Lifetime of the access token in seconds
    """

    access_token: str
    refresh_token: str | None
    expires_in: int


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    if isinstance(error, str):
        return body.get("error_description") or error
    return f"HTTP {response.status_code}"


class SpotifyClient:
    """Spotify OAuth and Web API calls for one registered application."""

    def __init__(
        self,
        http: httpx.Client,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout_s: float = 15.0,
    ):
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._timeout = httpx.Timeout(timeout_s, connect=10.0)

    # -------------------------------------------------------------------------
    # Accounts service
    # -------------------------------------------------------------------------

    def authorize_url(self, state: str) -> str:
        """URL the browser is sent to for the consent screen."""
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "scope": " ".join(SCOPES),
            "redirect_uri": self._redirect_uri,
            "state": state,
            "show_dialog": "true",
        }
        return f"{ACCOUNTS_URL}/authorize?{urlencode(params)}"

    def _token_request(self, form: dict[str, str]) -> TokenGrant:
        try:
            response = self._http.post(
                f"{ACCOUNTS_URL}/api/token",
                data=form,
                auth=(self._client_id, self._client_secret),
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise SpotifyError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            raise SpotifyError(_error_message(response), response.status_code)

        data = response.json()
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in", 3600)),
        )

    def exchange_code(self, code: str) -> TokenGrant:
        """Trade an authorization code for tokens."""
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            }
        )

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a new access token."""
        return self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    # -------------------------------------------------------------------------
    # Web API
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Call the Web API.

        Returns:
            Decoded JSON body, or None for empty (204) responses.

        Raises:
            SpotifyUnauthorizedError: 401 from Spotify.
            SpotifyError: Any other failure.
        """
        try:
            response = self._http.request(
                method,
                f"{API_URL}{path}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise SpotifyError(f"Request failed: {e}") from e

        if response.status_code == 401:
            raise SpotifyUnauthorizedError(_error_message(response), 401)
        if response.status_code >= 400:
            logger.warning(
                "spotify_api_error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise SpotifyError(_error_message(response), response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Player endpoints sometimes answer 200 with a non-JSON body
            return None
