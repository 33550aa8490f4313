"""Lumi Chat FastAPI application factory.

``create_app`` wires routes, error handlers and CORS. The request-id
middleware is added separately by ``add_request_id_middleware`` after
everything else, so it wraps CORS and the error handlers and every response,
preflights included, carries X-Request-ID.

One ``httpx.Client`` lives for the lifetime of the app. The Spotify client and
both storage buckets share it through ``app.state``; it is closed at shutdown.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from lumi.api.routes import create_api_router
from lumi.config import Settings, get_settings
from lumi.logging import configure_logging, get_logger
from lumi.middleware.cors import CORSMiddleware
from lumi.middleware.request_id import RequestIDMiddleware
from lumi.responses import install_error_handlers
from lumi.services.spotify import SpotifyClient
from lumi.storage import FakeStorageClient, StorageClient, StorageClientBase

configure_logging()

logger = get_logger(__name__)


def create_storage(http: httpx.Client, bucket: str) -> StorageClientBase:
    """Supabase storage for ``bucket`` when configured, in-memory otherwise."""
    settings = get_settings()
    if settings.supabase_url and settings.supabase_service_key:
        return StorageClient(
            supabase_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=bucket,
            http=http,
        )
    logger.info("storage_in_memory", bucket=bucket)
    return FakeStorageClient()


def create_spotify_client(http: httpx.Client, settings: Settings) -> SpotifyClient:
    return SpotifyClient(
        http,
        client_id=settings.spotify_client_id or "",
        client_secret=settings.spotify_client_secret or "",
        redirect_uri=settings.spotify_redirect_uri,
        timeout_s=settings.spotify_timeout_s,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    http = httpx.Client(
        timeout=httpx.Timeout(30.0, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.httpx_client = http
    app.state.spotify_client = create_spotify_client(http, settings)
    app.state.image_storage = create_storage(http, settings.image_bucket)
    app.state.avatar_storage = create_storage(http, settings.avatar_bucket)
    logger.info("lumi_api_started", env=settings.lumi_env.value)

    try:
        yield
    finally:
        http.close()
        logger.info("lumi_api_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Lumi Chat API",
        description="Polling chat room, direct messages and Spotify jam sessions",
        version="0.1.0",
        lifespan=lifespan,
    )
    install_error_handlers(app)
    app.include_router(create_api_router())
    app.add_middleware(CORSMiddleware)
    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Install the request-id middleware as the outermost layer.

    Call after every other ``add_middleware``; Starlette runs middleware in
    reverse registration order.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
