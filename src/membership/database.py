"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Database Connection Pool
═══════════════════════════════════════════════════════════════════════════════

asyncpg pool for the membership service, configured from
``membership.config.get_settings()``. Connection failures surface as
``StorageUnavailableError`` so the top-level handler answers 503 instead of
leaking driver exceptions into gate logic.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg

from membership.config import get_settings
from membership.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Module-level pool singleton
# ═══════════════════════════════════════════════════════════════════════════════
_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    """
    Returns the process-wide PostgreSQL pool.

    Created on first call with the parameters from MembershipSettings.
    """
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.database_pool_min,
            max_size=settings.database_pool_max,
            command_timeout=60,
        )
        logger.info(
            "Membership DB pool created (min=%s, max=%s)",
            settings.database_pool_min, settings.database_pool_max,
        )
    return _pool


async def close_pool() -> None:
    """Closes the pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Membership DB pool closed")


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """
    Lends a pooled connection.

    Usage::

        from membership.database import get_connection

        async with get_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM access_profiles WHERE identity_id = $1", identity_id)
    """
    try:
        pool = await get_pool()
    except (OSError, asyncpg.PostgresError) as exc:
        logger.error("Membership DB unreachable: %s", exc)
        raise StorageUnavailableError(f"Database unreachable: {exc}") from exc
    async with pool.acquire() as conn:
        yield conn


async def check_connection() -> bool:
    """Health check: is PostgreSQL reachable."""
    if get_settings().storage_backend == "memory":
        return True
    try:
        async with get_connection() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("Membership DB health check failed: %s", e)
        return False
