"""HTTP routes, one module per resource of the chat API.

Routers are collected in ``create_api_router`` rather than at import time so
that importing a route module never reads settings.
"""

from fastapi import APIRouter

from lumi.api.routes import (
    direct_messages,
    health,
    jam_sessions,
    messages,
    participants,
    presence,
    session_votes,
    spotify_auth,
    spotify_control,
    uploads,
)

ROUTE_MODULES = (
    health,
    messages,
    presence,
    participants,
    direct_messages,
    jam_sessions,
    session_votes,
    spotify_auth,
    spotify_control,
    uploads,
)


def create_api_router() -> APIRouter:
    api_router = APIRouter()
    for module in ROUTE_MODULES:
        api_router.include_router(module.router)
    return api_router


__all__ = ["create_api_router"]
