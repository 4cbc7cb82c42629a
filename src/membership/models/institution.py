"""
membership/models/institution.py — Institution (pesantren) business record
and the entitlement inputs derived from it.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from pydantic import Field

from membership.models.common import MembershipBase
from membership.models.enums import Feature, LockReason, PaymentStatus, ProfileLevel


class InstitutionRead(MembershipBase):
    """Business profile of a member institution. Never consulted by the route gate."""
    institution_id: UUID = Field(default_factory=uuid4)
    owner_identity_id: UUID | None = None

    institution_name: str = ""
    supervisor_name: str = ""
    short_address: str = ""

    # Set by the regional authority, display-only for the institution itself
    region_ref: str | None = None
    region_name: str | None = None
    city_name: str | None = None

    social_links: dict[str, str] = Field(default_factory=dict)
    latitude: float | None = None
    longitude: float | None = None
    mission_vision: str = ""
    short_history: str = ""

    payment_status: PaymentStatus = PaymentStatus.UNPAID
    profile_level: ProfileLevel = ProfileLevel.BASIC
    nip: str | None = Field(default=None, description="Institution identifier (NIP)")
    nip_active: bool = False

    def level_fields(self) -> dict[str, Any]:
        """Current values of every field a tier predicate can look at."""
        return {
            "institution_name": self.institution_name,
            "supervisor_name": self.supervisor_name,
            "short_address": self.short_address,
            "social_links": dict(self.social_links),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "mission_vision": self.mission_vision,
            "short_history": self.short_history,
        }


class EntitlementState(MembershipBase):
    """Derived per-institution state fed to the entitlement engine."""

    model_config = {"frozen": True}

    payment_status: PaymentStatus = PaymentStatus.UNPAID
    profile_level: ProfileLevel = ProfileLevel.BASIC
    crew_slot_count: int = Field(default=0, ge=0)


class PromotionRequest(MembershipBase):
    target_level: ProfileLevel
    fields: dict[str, Any] = Field(default_factory=dict)


class PromotionResult(MembershipBase):
    institution_id: UUID
    previous_level: ProfileLevel
    profile_level: ProfileLevel


class InstitutionActivation(MembershipBase):
    """Payment verified: the institution receives its active NIP."""
    nip: str = Field(..., min_length=4, max_length=32, pattern=r"^\d+$")


class FeatureLock(MembershipBase):
    feature: Feature
    locked: bool
    reason: LockReason | None = None


class EntitlementView(MembershipBase):
    institution_id: UUID
    state: EntitlementState
    features: list[FeatureLock] = Field(default_factory=list)
