"""Spotify account linking routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from lumi.api.deps import get_db, get_spotify_client
from lumi.schemas.spotify import SpotifyUserRequest
from lumi.services.spotify import SpotifyClient
from lumi.services.spotify import auth as spotify_auth

router = APIRouter(prefix="/spotify-auth", tags=["spotify"])


@router.get("/login")
def login(
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    username: str | None = None,
) -> dict:
    """Authorization URL for the consent popup."""
    return {"authUrl": spotify_auth.login_url(spotify, username)}


@router.get("/callback", response_class=HTMLResponse)
def callback(
    db: Annotated[Session, Depends(get_db)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> HTMLResponse:
    """OAuth redirect target. Renders a page for the popup window."""
    page = spotify_auth.handle_callback(db, spotify, code=code, state=state, error=error)
    return HTMLResponse(content=page.to_html(), status_code=page.status_code)


@router.get("/status")
def status(
    db: Annotated[Session, Depends(get_db)],
    username: str | None = None,
) -> dict:
    """Whether the user has a live Spotify connection."""
    return spotify_auth.get_status(db, username)


@router.post("/refresh")
def refresh(
    body: SpotifyUserRequest,
    db: Annotated[Session, Depends(get_db)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify_client)],
) -> dict:
    """Force a token refresh."""
    spotify_auth.refresh_connection(db, spotify, body.username)
    return {"success": True}


@router.post("/logout")
def logout(
    body: SpotifyUserRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Unlink the Spotify account."""
    spotify_auth.logout(db, body.username)
    return {"success": True}
