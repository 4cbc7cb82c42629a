"""
membership/models/enums.py — Closed value sets of the membership domain.

    • Role — exactly one per identity
    • AccountStatus — lifecycle set by the regional admin decision
    • PaymentStatus / ProfileLevel — inputs of the entitlement engine
    • Feature / LockReason — entitlement engine vocabulary
    • CrewRoleCode — crew classification, embedded in member numbers
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Role of an identity; a closed set, unknown values are never coerced."""
    CENTRAL_ADMIN = "central_admin"
    REGIONAL_ADMIN = "regional_admin"
    FINANCE_ADMIN = "finance_admin"
    MEMBER = "member"


class AccountStatus(str, Enum):
    """Account lifecycle: pending → active | rejected, decided exactly once."""
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class ProfileLevel(str, Enum):
    """Ordered completeness tier. Compare with ``rank``, never with ``<`` on values."""
    BASIC = "basic"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def next_level(self) -> "ProfileLevel | None":
        """The tier directly above, or None at the top."""
        idx = self.rank + 1
        return _LEVEL_ORDER[idx] if idx < len(_LEVEL_ORDER) else None

    def reaches(self, other: "ProfileLevel") -> bool:
        """True if this tier is ``other`` or above it."""
        return self.rank >= other.rank


_LEVEL_ORDER: tuple[ProfileLevel, ...] = (
    ProfileLevel.BASIC,
    ProfileLevel.SILVER,
    ProfileLevel.GOLD,
    ProfileLevel.PLATINUM,
)


class Feature(str, Enum):
    """Features guarded by the entitlement engine."""
    DIGITAL_ID_CARD = "digital_id_card"
    CREW_ADD = "crew_add"
    CREW_EDIT = "crew_edit"
    CREW_REMOVE = "crew_remove"


ROSTER_FEATURES: frozenset[Feature] = frozenset(
    {Feature.CREW_ADD, Feature.CREW_EDIT, Feature.CREW_REMOVE}
)


class LockReason(str, Enum):
    """Why a feature is locked; each maps to a different remediation."""
    UNPAID = "unpaid"
    SLOT_EXHAUSTED = "slot_exhausted"
    LEVEL_TOO_LOW = "level_too_low"


class CrewRoleCode(str, Enum):
    """Crew classification inside an institution's media team."""
    COORDINATOR = "coordinator"
    MEMBER = "member"


class IssuanceFailureReason(str, Enum):
    INSTITUTION_NOT_ACTIVATED = "institution_not_activated"
    INSTITUTION_MISSING = "institution_missing"
    SEQUENCE_EXHAUSTED = "sequence_exhausted"
    ROLE_CHANGED = "role_changed"


class SubmissionKind(str, Enum):
    """Self-service submissions waiting for one-time verification."""
    REGISTRATION = "registration"
    CLAIM = "claim"
