"""Liveness endpoint."""

from fastapi import APIRouter


router = APIRouter()


@router.get("")
async def health() -> dict:
    """Return a static payload so load balancers can check the service is up."""
    return {"success": True, "status": "ok"}
