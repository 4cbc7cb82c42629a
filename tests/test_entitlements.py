"""
Tests for the feature lock engine.
"""

import pytest

from membership.exceptions import FeatureLockedError, SlotExhaustedError
from membership.models.enums import Feature, LockReason, PaymentStatus, ProfileLevel
from membership.models.institution import EntitlementState
from membership.services.entitlements import (
    evaluate_entitlements,
    is_locked,
    lock_reason,
    require_unlocked,
)

PAID, UNPAID = PaymentStatus.PAID, PaymentStatus.UNPAID


class TestDigitalIdCard:
    @pytest.mark.parametrize("level,locked", [
        (ProfileLevel.BASIC, True),
        (ProfileLevel.SILVER, True),
        (ProfileLevel.GOLD, False),
        (ProfileLevel.PLATINUM, False),
    ])
    @pytest.mark.parametrize("payment", [PAID, UNPAID])
    def test_unlocked_from_gold_regardless_of_payment(self, level, locked, payment):
        assert is_locked(Feature.DIGITAL_ID_CARD, payment, level) is locked

    def test_reason_is_level_too_low(self):
        assert lock_reason(Feature.DIGITAL_ID_CARD, PAID, ProfileLevel.SILVER) is LockReason.LEVEL_TOO_LOW


class TestRosterLocks:
    @pytest.mark.parametrize("feature", [Feature.CREW_ADD, Feature.CREW_EDIT, Feature.CREW_REMOVE])
    @pytest.mark.parametrize("level", list(ProfileLevel))
    def test_unpaid_locks_roster_at_every_level(self, feature, level):
        assert lock_reason(feature, UNPAID, level) is LockReason.UNPAID

    @pytest.mark.parametrize("feature", [Feature.CREW_ADD, Feature.CREW_EDIT, Feature.CREW_REMOVE])
    def test_paid_roster_is_open(self, feature):
        assert not is_locked(feature, PAID, ProfileLevel.BASIC, crew_slot_count=2)

    def test_full_roster_is_slot_exhausted_not_unpaid(self):
        reason = lock_reason(Feature.CREW_ADD, PAID, ProfileLevel.GOLD, crew_slot_count=3)
        assert reason is LockReason.SLOT_EXHAUSTED

    def test_unpaid_is_reported_before_slots(self):
        reason = lock_reason(Feature.CREW_ADD, UNPAID, ProfileLevel.GOLD, crew_slot_count=3)
        assert reason is LockReason.UNPAID

    def test_full_roster_can_still_be_edited_and_trimmed(self):
        assert not is_locked(Feature.CREW_EDIT, PAID, ProfileLevel.GOLD, crew_slot_count=3)
        assert not is_locked(Feature.CREW_REMOVE, PAID, ProfileLevel.GOLD, crew_slot_count=3)

    def test_capacity_is_configurable(self):
        assert not is_locked(Feature.CREW_ADD, PAID, ProfileLevel.BASIC, crew_slot_count=3, capacity=5)


class TestEvaluateEntitlements:
    def test_one_reason_per_feature(self):
        state = EntitlementState(payment_status=PAID, profile_level=ProfileLevel.SILVER, crew_slot_count=3)
        locks = {lock.feature: lock for lock in evaluate_entitlements(state, capacity=3)}

        assert set(locks) == set(Feature)
        assert locks[Feature.DIGITAL_ID_CARD].reason is LockReason.LEVEL_TOO_LOW
        assert locks[Feature.CREW_ADD].reason is LockReason.SLOT_EXHAUSTED
        assert not locks[Feature.CREW_EDIT].locked
        assert locks[Feature.CREW_EDIT].reason is None

    def test_require_unlocked_raises_distinct_errors(self):
        full = EntitlementState(payment_status=PAID, profile_level=ProfileLevel.GOLD, crew_slot_count=3)
        with pytest.raises(SlotExhaustedError) as exc_info:
            require_unlocked(Feature.CREW_ADD, full, capacity=3)
        assert exc_info.value.reason == "slot_exhausted"
        assert exc_info.value.details["capacity"] == 3

        unpaid = EntitlementState(payment_status=UNPAID, profile_level=ProfileLevel.GOLD)
        with pytest.raises(FeatureLockedError) as exc_info:
            require_unlocked(Feature.CREW_REMOVE, unpaid, capacity=3)
        assert not isinstance(exc_info.value, SlotExhaustedError)
        assert exc_info.value.reason == "unpaid"

    def test_require_unlocked_passes(self):
        state = EntitlementState(payment_status=PAID, profile_level=ProfileLevel.BASIC, crew_slot_count=1)
        require_unlocked(Feature.CREW_ADD, state, capacity=3)
