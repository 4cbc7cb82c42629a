"""
membership/models/crew.py — Crew roster records and the two-phase add result.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from pydantic import Field

from membership.models.common import MembershipBase
from membership.models.enums import CrewRoleCode, IssuanceFailureReason


class CrewCreate(MembershipBase):
    """Fields submitted when adding a crew member."""
    name: str = Field(..., min_length=2, max_length=255, examples=["Ahmad Fauzi"])
    whatsapp: str = Field(..., pattern=r"^(\+62|0)8\d{7,12}$", examples=["081234567890"])
    skill: str = Field(..., min_length=1, max_length=64, examples=["Videografi"])
    role_code: CrewRoleCode = CrewRoleCode.MEMBER


class CrewMember(MembershipBase):
    crew_id: UUID = Field(default_factory=uuid4)
    institution_id: UUID
    name: str
    whatsapp: str = ""
    skill: str = ""
    role_code: CrewRoleCode = CrewRoleCode.MEMBER
    assigned_number: str | None = Field(
        default=None,
        description="Member number (NIAM); null until the institution holds an active NIP",
    )


class CrewRoleChange(MembershipBase):
    role_code: CrewRoleCode


class IssuanceOutcome(MembershipBase):
    """Secondary result of issuance; a failure here is a warning, not an error."""
    issued: bool
    assigned_number: str | None = None
    reason: IssuanceFailureReason | None = None
    message: str | None = None


class AddCrewResult(MembershipBase):
    """Composite result: creation succeeded, issuance reported on its own."""
    created: CrewMember
    issuance: IssuanceOutcome
