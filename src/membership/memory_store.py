"""
═══════════════════════════════════════════════════════════════════════════════
Membership — In-Memory Store (stands in for PostgreSQL in local runs and tests)
═══════════════════════════════════════════════════════════════════════════════

In-memory implementations of the repository functions plus
``activate_membership_memory_store()``, which swaps them into
``membership.db.repositories.*``.

Every function body runs without an ``await`` between read and write, so on
a single event loop each one is atomic, the same guarantee the SQL versions
get from conditional updates and row locks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Data stores
# ═══════════════════════════════════════════════════════════════════════════════
_profiles: dict[UUID, dict] = {}
_institutions: dict[UUID, dict] = {}
_crew: dict[UUID, dict] = {}
_audit: list[dict] = []

_now = lambda: datetime.now(timezone.utc)  # noqa: E731

_PROFILE_COLUMNS = ("identity_id", "role", "account_status", "region_ref")


def reset_memory_store() -> None:
    """Drop every record (test isolation)."""
    _profiles.clear()
    _institutions.clear()
    _crew.clear()
    _audit.clear()


def audit_records() -> list[dict]:
    return list(_audit)


# ═══════════════════════════════════════════════════════════════════════════════
# profile_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def get_access_profile(identity_id: UUID) -> dict | None:
    row = _profiles.get(identity_id)
    if row is None:
        return None
    return {k: row[k] for k in _PROFILE_COLUMNS}


async def create_access_profile(
    identity_id: UUID, role: str, region_ref: str | None = None,
) -> dict:
    now = _now()
    _profiles[identity_id] = {
        "identity_id": identity_id, "role": role, "account_status": "pending",
        "region_ref": region_ref, "decided_at": None,
        "created_at": now, "updated_at": now,
    }
    logger.info("Membership memory store: created profile %s (%s)", identity_id, role)
    return await get_access_profile(identity_id)


async def decide_account_status(identity_id: UUID, status: str) -> dict | None:
    row = _profiles.get(identity_id)
    if row is None or row["account_status"] != "pending":
        return None
    row["account_status"] = status
    row["decided_at"] = row["updated_at"] = _now()
    return {k: row[k] for k in _PROFILE_COLUMNS}


# ═══════════════════════════════════════════════════════════════════════════════
# institution_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def get_institution(institution_id: UUID) -> dict | None:
    row = _institutions.get(institution_id)
    return _copy_institution(row) if row else None


async def get_institution_by_owner(identity_id: UUID) -> dict | None:
    for row in _institutions.values():
        if row["owner_identity_id"] == identity_id:
            return _copy_institution(row)
    return None


async def create_institution(owner_identity_id: UUID | None, **fields: Any) -> dict:
    iid = uuid4()
    now = _now()
    row = {
        "institution_id": iid, "owner_identity_id": owner_identity_id,
        "institution_name": fields.get("institution_name", ""),
        "supervisor_name": fields.get("supervisor_name", ""),
        "short_address": fields.get("short_address", ""),
        "region_ref": fields.get("region_ref"),
        "region_name": fields.get("region_name"),
        "city_name": fields.get("city_name"),
        "social_links": {}, "latitude": None, "longitude": None,
        "mission_vision": "", "short_history": "",
        "payment_status": "unpaid", "profile_level": "basic",
        "nip": None, "nip_active": False,
        "created_at": now, "updated_at": now,
    }
    _institutions[iid] = row
    logger.info("Membership memory store: created institution %s", iid)
    return _copy_institution(row)


async def promote_level(
    institution_id: UUID,
    expected_level: str,
    new_level: str,
    fields: dict[str, Any],
) -> dict | None:
    row = _institutions.get(institution_id)
    if row is None or row["profile_level"] != expected_level:
        return None
    for column in (
        "institution_name", "supervisor_name", "short_address", "social_links",
        "latitude", "longitude", "mission_vision", "short_history",
    ):
        if column in fields:
            row[column] = dict(fields[column]) if column == "social_links" else fields[column]
    row["profile_level"] = new_level
    row["updated_at"] = _now()
    return _copy_institution(row)


async def activate_institution(institution_id: UUID, nip: str) -> dict | None:
    row = _institutions.get(institution_id)
    if row is None:
        return None
    row.update(payment_status="paid", nip=nip, nip_active=True, updated_at=_now())
    return _copy_institution(row)


def _copy_institution(row: dict) -> dict:
    data = dict(row)
    data["social_links"] = dict(row["social_links"])
    return data


# ═══════════════════════════════════════════════════════════════════════════════
# crew_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

def _crew_of(institution_id: UUID) -> list[dict]:
    rows = [c for c in _crew.values() if c["institution_id"] == institution_id]
    return sorted(rows, key=lambda c: c["created_at"])


async def count_for_institution(institution_id: UUID) -> int:
    return len(_crew_of(institution_id))


async def list_for_institution(institution_id: UUID) -> list[dict]:
    return [dict(c) for c in _crew_of(institution_id)]


async def create_within_capacity(
    institution_id: UUID,
    name: str,
    whatsapp: str,
    skill: str,
    role_code: str,
    capacity: int,
) -> dict | None:
    if len(_crew_of(institution_id)) >= capacity:
        return None
    cid = uuid4()
    now = _now()
    row = {
        "crew_id": cid, "institution_id": institution_id, "name": name,
        "whatsapp": whatsapp, "skill": skill, "role_code": role_code,
        "assigned_number": None, "created_at": now, "updated_at": now,
    }
    _crew[cid] = row
    return dict(row)


async def get_crew(crew_id: UUID) -> dict | None:
    row = _crew.get(crew_id)
    return dict(row) if row else None


async def list_issued_numbers(institution_id: UUID) -> list[str]:
    return [c["assigned_number"] for c in _crew_of(institution_id) if c["assigned_number"]]


async def set_number_if_empty(crew_id: UUID, number: str, role_code: str) -> dict | None:
    row = _crew.get(crew_id)
    if row is None or row["assigned_number"] is not None or row["role_code"] != role_code:
        return None
    row["assigned_number"] = number
    row["updated_at"] = _now()
    return dict(row)


async def change_role(crew_id: UUID, role_code: str) -> tuple[dict, str | None] | None:
    row = _crew.get(crew_id)
    if row is None:
        return None
    previous = row["assigned_number"]
    row.update(role_code=role_code, assigned_number=None, updated_at=_now())
    return dict(row), previous


async def delete_crew(crew_id: UUID) -> bool:
    return _crew.pop(crew_id, None) is not None


# ═══════════════════════════════════════════════════════════════════════════════
# audit_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def insert_audit_record(record: dict[str, Any]) -> None:
    _audit.append(dict(record))


# ═══════════════════════════════════════════════════════════════════════════════
# Activation (monkey-patching)
# ═══════════════════════════════════════════════════════════════════════════════

def activate_membership_memory_store() -> None:
    """
    Replaces the functions in membership.db.repositories.* with the in-memory ones.

    Called from membership.main → lifespan() when STORAGE_BACKEND=memory or
    PostgreSQL is unreachable at startup.
    """
    from membership.db.repositories import audit_repo, crew_repo, institution_repo, profile_repo

    # ── profile_repo ──
    profile_repo.get_access_profile = get_access_profile
    profile_repo.create_access_profile = create_access_profile
    profile_repo.decide_account_status = decide_account_status

    # ── institution_repo ──
    institution_repo.get_institution = get_institution
    institution_repo.get_institution_by_owner = get_institution_by_owner
    institution_repo.create_institution = create_institution
    institution_repo.promote_level = promote_level
    institution_repo.activate_institution = activate_institution

    # ── crew_repo ──
    crew_repo.count_for_institution = count_for_institution
    crew_repo.list_for_institution = list_for_institution
    crew_repo.create_within_capacity = create_within_capacity
    crew_repo.get_crew = get_crew
    crew_repo.list_issued_numbers = list_issued_numbers
    crew_repo.set_number_if_empty = set_number_if_empty
    crew_repo.change_role = change_role
    crew_repo.delete_crew = delete_crew

    # ── audit_repo ──
    audit_repo.insert_audit_record = insert_audit_record

    logger.warning(
        "Membership memory store ACTIVATED: all data is in-memory (lost on restart)."
    )
