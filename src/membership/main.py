"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Application Entry Point
═══════════════════════════════════════════════════════════════════════════════

Application factory of the membership access & entitlement service: access
profiles and route gates, profile leveling, feature locks and the crew
roster with member number issuance.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from membership import __version__
from membership.config import get_settings
from membership.database import close_pool, get_pool
from membership.exceptions import MembershipError

# ── API routers ──────────────────────────────────────────────────────────
from membership.api.access import router as access_router
from membership.api.admin import router as admin_router
from membership.api.crew import router as crew_router
from membership.api.health import router as health_router
from membership.api.institutions import router as institutions_router
from membership.api.internal import router as internal_router
from membership.api.submissions import router as submissions_router

# ═══════════════════════════════════════════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# SQL migrations
# ═══════════════════════════════════════════════════════════════════════════════

async def _apply_migrations(pool) -> None:
    """Applies SQL migrations from ``membership/db/migrations/``."""
    migrations_dir = Path(__file__).parent / "db" / "migrations"
    if not migrations_dir.is_dir():
        logger.info("No migrations directory found, skipping")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.info("No SQL migration files found, skipping")
        return

    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS _applied_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
        """)

        rows = await conn.fetch("SELECT filename FROM _applied_migrations")
        applied = {row["filename"] for row in rows}

        for sql_file in sql_files:
            if sql_file.name in applied:
                continue

            logger.info("Applying migration: %s", sql_file.name)
            sql_text = sql_file.read_text(encoding="utf-8")
            async with conn.transaction():
                await conn.execute(sql_text)
                await conn.execute(
                    "INSERT INTO _applied_migrations (filename) VALUES ($1)",
                    sql_file.name,
                )
            logger.info("Migration applied: %s", sql_file.name)

    logger.info("Membership migrations up to date (%d files checked)", len(sql_files))


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        1. STORAGE_BACKEND=memory → in-memory store, no PostgreSQL at all.
        2. Otherwise create the pool and apply migrations; if PostgreSQL is
           unreachable fall back to the memory store (graceful degradation).
        3. Connect the NATS publisher.

    Shutdown:
        1. Finish background issuance, close NATS, close the pool.
    """
    from membership.memory_store import activate_membership_memory_store
    from membership.services.crew_service import wait_for_background_tasks

    settings = get_settings()
    logger.info("Membership service v%s starting (env=%s)", __version__, settings.app_env)
    logger.info("   Log level: %s", settings.log_level)

    pool = None
    if settings.storage_backend == "memory":
        activate_membership_memory_store()
    else:
        try:
            pool = await get_pool()
            logger.info("Membership database pool initialized")
        except Exception as e:
            logger.warning("Membership DB not available, activating memory store: %s", e)
            activate_membership_memory_store()

    if pool is not None:
        try:
            await _apply_migrations(pool)
        except Exception as e:
            logger.warning("Membership migration apply failed (non-fatal): %s", e)

    try:
        from membership.events import connect as nats_connect
        await nats_connect()
    except Exception as e:
        logger.warning("NATS publisher not available (events will be skipped): %s", e)

    yield

    # Shutdown: background work → buffered audit → NATS → DB
    await wait_for_background_tasks()
    try:
        from membership.services.audit_logger import get_audit_logger
        await get_audit_logger().flush_buffer()
    except Exception as e:
        logger.warning("Membership audit buffer flush failed: %s", e)
    try:
        from membership.events import disconnect as nats_disconnect
        await nats_disconnect()
    except Exception as e:
        logger.debug("NATS disconnect failed: %s", e)
    try:
        await close_pool()
    except Exception as e:
        logger.debug("DB pool close failed: %s", e)
    logger.info("Membership service stopped")


# ═══════════════════════════════════════════════════════════════════════════════
# Application factory
# ═══════════════════════════════════════════════════════════════════════════════

STATUS_MAP: dict[str, int] = {
    "MEMBERSHIP_NOT_FOUND": 404,
    "MEMBERSHIP_CONFLICT": 409,
    "MEMBERSHIP_ALREADY_AT_LEVEL": 409,
    "MEMBERSHIP_VALIDATION_ERROR": 422,
    "MEMBERSHIP_INVALID_TRANSITION": 422,
    "MEMBERSHIP_MISSING_FIELDS": 422,
    "MEMBERSHIP_IMMUTABLE_FIELDS": 422,
    "MEMBERSHIP_AUTH_ERROR": 401,
    "MEMBERSHIP_AUTHZ_ERROR": 403,
    "MEMBERSHIP_RATE_LIMITED": 429,
    "MEMBERSHIP_FEATURE_LOCKED": 402,
    "MEMBERSHIP_SLOT_EXHAUSTED": 409,
    "MEMBERSHIP_ISSUANCE_FAILED": 409,
    "MEMBERSHIP_STORAGE_UNAVAILABLE": 503,
}


def create_app() -> FastAPI:
    """Creates and configures the membership FastAPI application."""
    settings = get_settings()

    _is_production = settings.app_env == "production"

    app = FastAPI(
        redirect_slashes=False,
        title="Membership Access Service",
        description=(
            "Access control and entitlements for a federated membership "
            "organization: status and role gates, profile leveling, "
            "feature locks and crew member numbers."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if _is_production else "/docs",
        redoc_url=None if _is_production else "/redoc",
        openapi_url=None if _is_production else "/api/v1/openapi.json",
    )

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    )

    # ── API routers ──────────────────────────────────────────────────────
    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(access_router)
    v1_router.include_router(institutions_router)
    v1_router.include_router(crew_router)
    v1_router.include_router(admin_router)
    v1_router.include_router(submissions_router)
    v1_router.include_router(internal_router)
    v1_router.include_router(health_router)
    app.include_router(v1_router)

    # ── Global MembershipError handler ───────────────────────────────────
    @app.exception_handler(MembershipError)
    async def membership_error_handler(request: Request, exc: MembershipError) -> JSONResponse:
        """Maps membership error codes to HTTP statuses."""
        status_code = STATUS_MAP.get(exc.code, 500)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            },
        )

    @app.get("/")
    async def root():
        return {
            "name": "Membership Access Service",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "v1": {
                    "health": "/api/v1/health",
                    "profile": "/api/v1/access/profile",
                    "decision": "/api/v1/access/decision?path=/dashboard",
                },
            },
        }

    return app


# ═══════════════════════════════════════════════════════════════════════════════
# Module-level singleton
# ═══════════════════════════════════════════════════════════════════════════════
app = create_app()


def main() -> None:
    """Runs the membership service with Uvicorn."""
    settings = get_settings()
    logger.info("Starting membership server on %s:%s", settings.api_host, settings.api_port)
    uvicorn.run(
        "membership.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
