"""
membership/models/access.py — Security-relevant records and gate outcomes.

AccessProfile deliberately carries no business fields (names, media links):
it is fetched on its own so that gate checks never wait on, or get corrupted
by, institution data loading.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from membership.models.common import MembershipBase
from membership.models.enums import AccountStatus, Role


class Session(MembershipBase):
    """What the identity provider hands us: presence and principal reference."""

    model_config = {"frozen": True}

    is_authenticated: bool = False
    identity_id: UUID | None = None

    @classmethod
    def anonymous(cls) -> "Session":
        return cls(is_authenticated=False, identity_id=None)


class AccessProfile(MembershipBase):
    """Minimal authoritative security record for one identity."""

    model_config = {"frozen": True, "str_strip_whitespace": True}

    identity_id: UUID
    role: Role
    account_status: AccountStatus
    region_ref: str | None = None

    @model_validator(mode="after")
    def _regional_admin_needs_region(self) -> "AccessProfile":
        if self.role is Role.REGIONAL_ADMIN and not self.region_ref:
            raise ValueError("regional_admin profile requires region_ref")
        return self


class GatePages(MembershipBase):
    """Special pages known to the gates; passed in, never read from globals."""

    model_config = {"frozen": True}

    login: str = "/login"
    pending: str = "/pending"
    rejected: str = "/rejected"
    forbidden: str = "/403"

    @classmethod
    def from_settings(cls, settings) -> "GatePages":
        return cls(
            login=settings.login_path,
            pending=settings.pending_path,
            rejected=settings.rejected_path,
            forbidden=settings.forbidden_path,
        )


class DecisionKind(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    LOADING = "loading"


class GateDecision(MembershipBase):
    """Outcome of a gate evaluation. ``location`` is set only for redirects."""

    model_config = {"frozen": True}

    kind: DecisionKind
    location: str | None = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(kind=DecisionKind.ALLOW)

    @classmethod
    def redirect(cls, location: str) -> "GateDecision":
        return cls(kind=DecisionKind.REDIRECT, location=location)

    @classmethod
    def loading(cls) -> "GateDecision":
        return cls(kind=DecisionKind.LOADING)

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOW


class AccountDecision(MembershipBase):
    """Regional admin verdict on a pending account."""
    status: AccountStatus = Field(..., examples=["active"])

    @model_validator(mode="after")
    def _final_states_only(self) -> "AccountDecision":
        if self.status is AccountStatus.PENDING:
            raise ValueError("decision must be 'active' or 'rejected'")
        return self
