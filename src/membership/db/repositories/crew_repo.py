"""
membership/db/repositories/crew_repo.py — Crew roster repository.

``create_within_capacity`` holds a row lock on the owning institution for the
whole count-then-insert, so concurrent adds across processes cannot both see
a free slot.
"""

from __future__ import annotations

from uuid import UUID

from membership.database import get_connection


async def count_for_institution(institution_id: UUID) -> int:
    async with get_connection() as conn:
        return await conn.fetchval(
            "SELECT COUNT(*) FROM crew_members WHERE institution_id = $1",
            institution_id,
        )


async def list_for_institution(institution_id: UUID) -> list[dict]:
    async with get_connection() as conn:
        rows = await conn.fetch(
            """
            SELECT * FROM crew_members
            WHERE institution_id = $1
            ORDER BY created_at
            """,
            institution_id,
        )
        return [dict(r) for r in rows]


async def create_within_capacity(
    institution_id: UUID,
    name: str,
    whatsapp: str,
    skill: str,
    role_code: str,
    capacity: int,
) -> dict | None:
    """Insert a crew member unless the institution already has ``capacity`` members."""
    async with get_connection() as conn:
        async with conn.transaction():
            await conn.execute(
                "SELECT 1 FROM institutions WHERE institution_id = $1 FOR UPDATE",
                institution_id,
            )
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM crew_members WHERE institution_id = $1",
                institution_id,
            )
            if count >= capacity:
                return None
            row = await conn.fetchrow(
                """
                INSERT INTO crew_members (institution_id, name, whatsapp, skill, role_code)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                institution_id, name, whatsapp, skill, role_code,
            )
            return dict(row) if row else None


async def get_crew(crew_id: UUID) -> dict | None:
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM crew_members WHERE crew_id = $1", crew_id)
        return dict(row) if row else None


async def list_issued_numbers(institution_id: UUID) -> list[str]:
    async with get_connection() as conn:
        rows = await conn.fetch(
            """
            SELECT assigned_number FROM crew_members
            WHERE institution_id = $1 AND assigned_number IS NOT NULL
            """,
            institution_id,
        )
        return [r["assigned_number"] for r in rows]


async def set_number_if_empty(crew_id: UUID, number: str, role_code: str) -> dict | None:
    """
    Store ``number`` only if the record has none yet and still holds the
    ``role_code`` the number was derived from; None otherwise.
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE crew_members
            SET assigned_number = $2, updated_at = NOW()
            WHERE crew_id = $1 AND assigned_number IS NULL AND role_code = $3
            RETURNING *
            """,
            crew_id, number, role_code,
        )
        return dict(row) if row else None


async def change_role(crew_id: UUID, role_code: str) -> tuple[dict, str | None] | None:
    """
    Update the role and clear the number derived from the old one.

    Returns ``(updated_row, previous_number)`` or None if the crew is gone.
    """
    async with get_connection() as conn:
        async with conn.transaction():
            previous = await conn.fetchval(
                "SELECT assigned_number FROM crew_members WHERE crew_id = $1 FOR UPDATE",
                crew_id,
            )
            row = await conn.fetchrow(
                """
                UPDATE crew_members
                SET role_code = $2, assigned_number = NULL, updated_at = NOW()
                WHERE crew_id = $1
                RETURNING *
                """,
                crew_id, role_code,
            )
            if not row:
                return None
            return dict(row), previous


async def delete_crew(crew_id: UUID) -> bool:
    async with get_connection() as conn:
        result = await conn.execute("DELETE FROM crew_members WHERE crew_id = $1", crew_id)
        return result.endswith(" 1")
