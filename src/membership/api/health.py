"""
membership/api/health.py — Health check of the membership service.

GET /api/v1/health — checks that storage is reachable.
"""

from fastapi import APIRouter

from membership.config import get_settings
from membership.database import check_connection

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health():
    db_ok = await check_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "storage_backend": get_settings().storage_backend,
        "service": "membership",
    }
