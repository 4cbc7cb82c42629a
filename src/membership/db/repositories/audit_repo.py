"""
membership/db/repositories/audit_repo.py — Audit log persistence.
"""

from __future__ import annotations

import json
from typing import Any

from membership.database import get_connection


async def insert_audit_record(record: dict[str, Any]) -> None:
    async with get_connection() as conn:
        await conn.execute(
            """
            INSERT INTO audit_log (action, entity_type, entity_id, user_id, details)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            """,
            record["action"],
            record["entity_type"],
            record["entity_id"],
            record["user_id"],
            json.dumps(record["details"], default=str),
        )
