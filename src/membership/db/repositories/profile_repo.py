"""
membership/db/repositories/profile_repo.py — Access profile repository.

Selects only the security columns. Business data lives in ``institutions``
and is never joined here.
"""

from __future__ import annotations

from uuid import UUID

from membership.database import get_connection


async def get_access_profile(identity_id: UUID) -> dict | None:
    """Fetch ``{identity_id, role, account_status, region_ref}`` or None."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            SELECT identity_id, role, account_status, region_ref
            FROM access_profiles
            WHERE identity_id = $1
            """,
            identity_id,
        )
        return dict(row) if row else None


async def create_access_profile(
    identity_id: UUID, role: str, region_ref: str | None = None,
) -> dict:
    """Register a new profile; status always starts as pending."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO access_profiles (identity_id, role, region_ref)
            VALUES ($1, $2, $3)
            RETURNING identity_id, role, account_status, region_ref
            """,
            identity_id, role, region_ref,
        )
        return dict(row) if row else {}


async def decide_account_status(identity_id: UUID, status: str) -> dict | None:
    """
    Move a pending profile to its final status.

    Returns None when the profile is not pending anymore (decided exactly once).
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE access_profiles
            SET account_status = $1, decided_at = NOW(), updated_at = NOW()
            WHERE identity_id = $2 AND account_status = 'pending'
            RETURNING identity_id, role, account_status, region_ref
            """,
            status, identity_id,
        )
        return dict(row) if row else None
