"""Pytest configuration and fixtures for Lumi tests.

Test isolation strategy:
- Each test gets a fresh SQLite database file created from the ORM metadata
- Route tests swap shared clients (DB sessions, blob storage, Spotify) through
  app.dependency_overrides
- Spotify HTTP traffic is intercepted with respx
"""

import os
from collections.abc import Generator
from pathlib import Path

# Settings require DATABASE_URL; route tests never touch the default engine
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("LUMI_ENV", "test")

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from lumi.api.deps import get_avatar_storage, get_db, get_image_storage, get_spotify_client
from lumi.app import create_app
from lumi.config import clear_settings_cache
from lumi.db.engine import create_db_engine
from lumi.db.models import Base
from lumi.db.session import create_session_factory
from lumi.services.spotify import SpotifyClient
from lumi.storage import FakeStorageClient

TEST_SPOTIFY_CLIENT_ID = "test-client-id"
TEST_SPOTIFY_CLIENT_SECRET = "test-client-secret"
TEST_REDIRECT_URI = "http://testserver/spotify-auth/callback"


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine over a throwaway SQLite file with the full schema."""
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'lumi.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for arranging data and asserting on it.

    Services commit through transaction(), so rows written here are visible to
    request-scoped sessions opened by the app.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def image_storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def avatar_storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def spotify_http() -> Generator[httpx.Client, None, None]:
    """Plain httpx client; tests mock its traffic with respx."""
    with httpx.Client() as http:
        yield http


@pytest.fixture
def spotify_client(spotify_http: httpx.Client) -> SpotifyClient:
    return SpotifyClient(
        spotify_http,
        client_id=TEST_SPOTIFY_CLIENT_ID,
        client_secret=TEST_SPOTIFY_CLIENT_SECRET,
        redirect_uri=TEST_REDIRECT_URI,
    )


@pytest.fixture
def app(
    session_factory: sessionmaker[Session],
    image_storage: FakeStorageClient,
    avatar_storage: FakeStorageClient,
    spotify_client: SpotifyClient,
) -> FastAPI:
    """App wired to the per-test database and fake collaborators."""
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    app.dependency_overrides[get_avatar_storage] = lambda: avatar_storage
    app.dependency_overrides[get_spotify_client] = lambda: spotify_client
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client for the wired app."""
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache(monkeypatch):
    """Reset the settings cache around each test; never sleep after a skip."""
    monkeypatch.setenv("SPOTIFY_SKIP_SETTLE_S", "0")
    clear_settings_cache()
    yield
    clear_settings_cache()
