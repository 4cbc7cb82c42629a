"""
membership/db/repositories/institution_repo.py — Institution repository.
"""

from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from membership.database import get_connection

# Columns a promotion may write; region columns are deliberately absent
_LEVEL_COLUMNS = (
    "institution_name",
    "supervisor_name",
    "short_address",
    "social_links",
    "latitude",
    "longitude",
    "mission_vision",
    "short_history",
)


def _row_to_dict(row) -> dict | None:
    if not row:
        return None
    data = dict(row)
    links = data.get("social_links")
    if isinstance(links, str):
        data["social_links"] = json.loads(links)
    return data


async def get_institution(institution_id: UUID) -> dict | None:
    """Find an institution by UUID."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM institutions WHERE institution_id = $1", institution_id
        )
        return _row_to_dict(row)


async def get_institution_by_owner(identity_id: UUID) -> dict | None:
    """Find the institution owned by an identity."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM institutions WHERE owner_identity_id = $1", identity_id
        )
        return _row_to_dict(row)


async def create_institution(owner_identity_id: UUID | None, **fields: Any) -> dict:
    """Create an institution record (basic level, unpaid)."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO institutions (
                owner_identity_id, institution_name, supervisor_name, short_address,
                region_ref, region_name, city_name
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            owner_identity_id,
            fields.get("institution_name", ""),
            fields.get("supervisor_name", ""),
            fields.get("short_address", ""),
            fields.get("region_ref"),
            fields.get("region_name"),
            fields.get("city_name"),
        )
        return _row_to_dict(row) or {}


async def promote_level(
    institution_id: UUID,
    expected_level: str,
    new_level: str,
    fields: dict[str, Any],
) -> dict | None:
    """
    Compare-and-set promotion: applies ``fields`` and ``new_level`` only while
    the stored level still equals ``expected_level``. None if it moved.
    """
    columns = [c for c in _LEVEL_COLUMNS if c in fields]
    values: list[Any] = []
    assignments = []
    for idx, column in enumerate(columns, start=4):
        value = fields[column]
        if column == "social_links":
            value = json.dumps(value)
            assignments.append(f"{column} = ${idx}::jsonb")
        else:
            assignments.append(f"{column} = ${idx}")
        values.append(value)
    assignments.append("updated_at = NOW()")
    set_clause = ", ".join(assignments)

    async with get_connection() as conn:
        row = await conn.fetchrow(
            f"""
            UPDATE institutions
            SET profile_level = $1, {set_clause}
            WHERE institution_id = $2 AND profile_level = $3
            RETURNING *
            """,
            new_level, institution_id, expected_level, *values,
        )
        return _row_to_dict(row)


async def activate_institution(institution_id: UUID, nip: str) -> dict | None:
    """Mark the institution paid and give it an active NIP."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE institutions
            SET payment_status = 'paid', nip = $2, nip_active = TRUE, updated_at = NOW()
            WHERE institution_id = $1
            RETURNING *
            """,
            institution_id, nip,
        )
        return _row_to_dict(row)
