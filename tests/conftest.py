"""
Shared fixtures: every test runs against the in-memory store with events off.
"""

import os
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

# Must be set before membership.config is imported anywhere
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"

import pytest
from jose import jwt

from membership import memory_store
from membership.db.repositories import institution_repo, profile_repo
from membership.memory_store import activate_membership_memory_store, reset_memory_store
from membership.models.access import AccessProfile, GatePages, Session
from membership.models.enums import AccountStatus, Role
from membership.services import pending_submissions
from membership.services.locks import institution_locks

TEST_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def memory_backend():
    """Fresh in-memory store for every test."""
    activate_membership_memory_store()
    reset_memory_store()
    pending_submissions.clear_pending()
    institution_locks.clear()
    yield
    reset_memory_store()
    pending_submissions.clear_pending()
    institution_locks.clear()


@pytest.fixture
def pages():
    return GatePages()


# ── Builders ─────────────────────────────────────────────────────────────

def make_profile(
    role: Role = Role.MEMBER,
    status: AccountStatus = AccountStatus.ACTIVE,
    region_ref: str | None = "jatim",
) -> AccessProfile:
    return AccessProfile(
        identity_id=uuid4(), role=role, account_status=status, region_ref=region_ref,
    )


def session_for(profile: AccessProfile) -> Session:
    return Session(is_authenticated=True, identity_id=profile.identity_id)


def make_token(identity_id: UUID, secret: str = TEST_SECRET, minutes: int = 30) -> str:
    payload = {
        "sub": str(identity_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(identity_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(identity_id)}"}


async def seed_profile(
    role: Role = Role.MEMBER,
    status: AccountStatus = AccountStatus.ACTIVE,
    region_ref: str | None = "jatim",
) -> AccessProfile:
    identity_id = uuid4()
    await profile_repo.create_access_profile(identity_id, role.value, region_ref)
    if status is not AccountStatus.PENDING:
        await profile_repo.decide_account_status(identity_id, status.value)
    return AccessProfile.model_validate(await profile_repo.get_access_profile(identity_id))


async def seed_institution(owner_identity_id: UUID | None = None, **values) -> UUID:
    """
    Create an institution and force stored columns to ``values``
    (payment_status, profile_level, nip, nip_active, level fields...).
    """
    row = await institution_repo.create_institution(
        owner_identity_id,
        institution_name=values.pop("institution_name", ""),
        region_ref="jatim",
        region_name="Jawa Timur",
        city_name="Malang",
    )
    institution_id = row["institution_id"]
    set_institution(institution_id, **values)
    return institution_id


def set_institution(institution_id: UUID, **values) -> None:
    memory_store._institutions[institution_id].update(values)


SILVER_FIELDS = {
    "institution_name": "Pondok Pesantren Al-Hikmah",
    "supervisor_name": "KH. Abdullah",
    "short_address": "Jl. Raya Singosari 12",
}

GOLD_FIELDS = {
    **SILVER_FIELDS,
    "social_links": {"instagram": "https://instagram.com/alhikmah"},
    "latitude": -7.89,
    "longitude": 112.66,
}

PLATINUM_FIELDS = {
    **GOLD_FIELDS,
    "mission_vision": "Mencetak santri yang berakhlak",
    "short_history": "Didirikan tahun 1985",
}
