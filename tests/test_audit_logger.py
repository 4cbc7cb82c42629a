"""
Tests for the audit logger fallback buffer.
"""

import pytest

from membership import memory_store
from membership.db.repositories import audit_repo
from membership.services.audit_logger import MembershipAuditAction, MembershipAuditLogger


async def failing_insert(record):
    raise ConnectionError("audit_log unreachable")


class TestAuditBuffer:
    @pytest.mark.asyncio
    async def test_records_go_to_storage(self):
        audit = MembershipAuditLogger()
        await audit.log(MembershipAuditAction.CREW_ADDED, "crew", "c-1", details={"role_code": "member"})

        [record] = memory_store.audit_records()
        assert record["action"] == "crew_added"
        assert record["details"] == {"role_code": "member"}
        assert audit.buffer_size == 0

    @pytest.mark.asyncio
    async def test_failed_write_is_buffered_then_flushed(self, monkeypatch):
        audit = MembershipAuditLogger()
        original = audit_repo.insert_audit_record
        monkeypatch.setattr(audit_repo, "insert_audit_record", failing_insert)

        await audit.log(MembershipAuditAction.NIAM_ISSUED, "crew", "c-1")
        assert audit.buffer_size == 1
        assert await audit.flush_buffer() == 0

        monkeypatch.setattr(audit_repo, "insert_audit_record", original)
        assert await audit.flush_buffer() == 1
        assert audit.buffer_size == 0
        assert [r["action"] for r in memory_store.audit_records()] == ["niam_issued"]

    @pytest.mark.asyncio
    async def test_buffer_is_bounded(self, monkeypatch):
        audit = MembershipAuditLogger(max_buffer_size=2)
        monkeypatch.setattr(audit_repo, "insert_audit_record", failing_insert)
        for i in range(3):
            await audit.log("role_changed", "crew", f"c-{i}")
        assert audit.buffer_size == 2
