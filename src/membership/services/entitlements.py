"""
membership/services/entitlements.py — Feature lock engine.

Pure functions, safe to call on every request:

    digital_id_card            unlocked iff profile_level ≥ gold (payment ignored)
    crew_add/edit/remove       locked while unpaid, at any level
    crew_add                   also locked once the roster fills the free quota

Each lock carries its reason (unpaid, slot_exhausted, level_too_low) so
the caller can offer the matching remediation. When a roster action is both
unpaid and at capacity, ``unpaid`` is reported: paying is the first step.
"""

from __future__ import annotations

from typing import assert_never
from uuid import UUID

from membership.config import get_settings
from membership.exceptions import FeatureLockedError, SlotExhaustedError
from membership.models.enums import Feature, LockReason, PaymentStatus, ProfileLevel
from membership.models.institution import EntitlementState, EntitlementView, FeatureLock

# TODO: a paid slot-purchase path would raise this per institution instead of a flat quota
FREE_CREW_SLOTS = 3


def lock_reason(
    feature: Feature,
    payment_status: PaymentStatus,
    profile_level: ProfileLevel,
    *,
    crew_slot_count: int = 0,
    capacity: int = FREE_CREW_SLOTS,
) -> LockReason | None:
    """Why ``feature`` is locked, or None when it is available."""
    match feature:
        case Feature.DIGITAL_ID_CARD:
            if profile_level.reaches(ProfileLevel.GOLD):
                return None
            return LockReason.LEVEL_TOO_LOW
        case Feature.CREW_ADD:
            if payment_status is PaymentStatus.UNPAID:
                return LockReason.UNPAID
            if crew_slot_count >= capacity:
                return LockReason.SLOT_EXHAUSTED
            return None
        case Feature.CREW_EDIT | Feature.CREW_REMOVE:
            if payment_status is PaymentStatus.UNPAID:
                return LockReason.UNPAID
            return None
        case _:
            assert_never(feature)


def is_locked(
    feature: Feature,
    payment_status: PaymentStatus,
    profile_level: ProfileLevel,
    *,
    crew_slot_count: int = 0,
    capacity: int = FREE_CREW_SLOTS,
) -> bool:
    return lock_reason(
        feature, payment_status, profile_level,
        crew_slot_count=crew_slot_count, capacity=capacity,
    ) is not None


def evaluate_entitlements(state: EntitlementState, capacity: int | None = None) -> list[FeatureLock]:
    """Lock state of every feature for one institution."""
    if capacity is None:
        capacity = get_settings().crew_free_slots
    locks = []
    for feature in Feature:
        reason = lock_reason(
            feature, state.payment_status, state.profile_level,
            crew_slot_count=state.crew_slot_count, capacity=capacity,
        )
        locks.append(FeatureLock(feature=feature, locked=reason is not None, reason=reason))
    return locks


def entitlement_view(institution_id: UUID, state: EntitlementState) -> EntitlementView:
    return EntitlementView(
        institution_id=institution_id,
        state=state,
        features=evaluate_entitlements(state),
    )


def require_unlocked(
    feature: Feature,
    state: EntitlementState,
    capacity: int | None = None,
) -> None:
    """Raise the matching FeatureLockedError if ``feature`` is locked."""
    if capacity is None:
        capacity = get_settings().crew_free_slots
    reason = lock_reason(
        feature, state.payment_status, state.profile_level,
        crew_slot_count=state.crew_slot_count, capacity=capacity,
    )
    if reason is None:
        return
    if reason is LockReason.SLOT_EXHAUSTED:
        raise SlotExhaustedError(feature.value, capacity)
    raise FeatureLockedError(feature.value, reason.value)
