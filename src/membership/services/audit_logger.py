"""
membership/services/audit_logger.py — Audit log of the membership domain.

Actions of the domain:
    • claim_approved, claim_rejected (account decisions by a regional admin)
    • payment_verified, nip_issued (institution activation)
    • crew_added, crew_deleted, role_changed, niam_issued (crew roster)
    • profile_promoted (leveling)

Writes through ``audit_repo`` (PostgreSQL or the in-memory store), buffers
in memory when the write fails and mirrors every record to NATS.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from membership.db.repositories import audit_repo

logger = logging.getLogger(__name__)


class MembershipAuditAction(str, Enum):
    """Audited actions of the membership domain."""

    # Accounts
    CLAIM_APPROVED = "claim_approved"
    CLAIM_REJECTED = "claim_rejected"

    # Institutions
    PAYMENT_VERIFIED = "payment_verified"
    NIP_ISSUED = "nip_issued"
    PROFILE_PROMOTED = "profile_promoted"

    # Crew roster
    CREW_ADDED = "crew_added"
    CREW_DELETED = "crew_deleted"
    ROLE_CHANGED = "role_changed"
    NIAM_ISSUED = "niam_issued"


class MembershipAuditLogger:
    """
    Audit logger of the membership service.

    Supports:
    - PostgreSQL (audit_log) or the in-memory store, via audit_repo
    - In-memory buffer (fallback)
    - NATS publication of audit records
    """

    def __init__(self, max_buffer_size: int = 10000) -> None:
        self._buffer: list[dict[str, Any]] = []
        self._max_buffer = max_buffer_size

    async def log(
        self,
        action: MembershipAuditAction | str,
        entity_type: str,
        entity_id: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one audit event."""
        action_str = action.value if isinstance(action, MembershipAuditAction) else action
        record = {
            "action": action_str,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "user_id": user_id,
            "details": details or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            await self._write_to_db(record)
        except Exception as e:
            logger.warning("Membership audit write failed, buffering: %s", e)
            self._write_to_buffer(record)

        # NATS mirror (graceful degradation)
        try:
            await self._publish_nats(record)
        except Exception as e:
            logger.debug("Membership audit NATS publish failed: %s", e)

    async def _write_to_db(self, record: dict[str, Any]) -> None:
        await audit_repo.insert_audit_record(record)

    async def _publish_nats(self, record: dict[str, Any]) -> None:
        from membership.events import connect

        nc = await connect()
        if nc:
            await nc.publish(
                f"membership.audit.{record['action']}",
                json.dumps(record, default=str).encode(),
            )

    def _write_to_buffer(self, record: dict[str, Any]) -> None:
        """Fallback in-memory buffer."""
        if len(self._buffer) >= self._max_buffer:
            self._buffer.pop(0)
        self._buffer.append(record)

    async def flush_buffer(self) -> int:
        """Try to write buffered records to storage again."""
        if not self._buffer:
            return 0
        flushed = 0
        remaining: list[dict[str, Any]] = []
        for record in self._buffer:
            try:
                await self._write_to_db(record)
                flushed += 1
            except Exception:
                remaining.append(record)
        self._buffer = remaining
        if flushed:
            logger.info("Flushed %d membership audit records from buffer", flushed)
        return flushed

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)


# ═══════════════════════════════════════════════════════════════════════════════
# Singleton
# ═══════════════════════════════════════════════════════════════════════════════

_audit_logger: MembershipAuditLogger | None = None


def get_audit_logger() -> MembershipAuditLogger:
    """Returns the single MembershipAuditLogger instance."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = MembershipAuditLogger()
    return _audit_logger
