"""Liveness probe."""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """200 while the process serves requests; the database is not consulted."""
    return {"status": "ok"}
