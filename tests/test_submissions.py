"""
Tests for pending self-service submissions.
"""

from datetime import datetime, timedelta, timezone

import pytest

from membership.exceptions import AuthenticationError, NotFoundError, RateLimitError
from membership.models.enums import SubmissionKind
from membership.services import pending_submissions
from membership.services.pending_submissions import (
    has_pending,
    stash_submission,
    verify_submission,
)

OWNER = "admin@alhikmah.sch.id"


def backdate_created(seconds):
    for entry in pending_submissions._pending.values():
        entry.created_at -= timedelta(seconds=seconds)


class TestPendingSubmissions:
    def test_code_is_six_digits(self):
        code = stash_submission(SubmissionKind.REGISTRATION, OWNER, {"institution_name": "Al-Hikmah"})
        assert len(code) == 6 and code.isdigit()
        assert has_pending(SubmissionKind.REGISTRATION, OWNER)

    def test_verification_consumes_and_clears(self):
        code = stash_submission(SubmissionKind.CLAIM, OWNER, {"nspp": "510035070001"})
        verified = verify_submission(SubmissionKind.CLAIM, OWNER, code)

        assert verified.status == "verified_pending_payment"
        assert verified.payload == {"nspp": "510035070001"}
        assert not has_pending(SubmissionKind.CLAIM, OWNER)
        with pytest.raises(NotFoundError):
            verify_submission(SubmissionKind.CLAIM, OWNER, code)

    def test_wrong_code_keeps_entry(self):
        code = stash_submission(SubmissionKind.REGISTRATION, OWNER, {})
        wrong = "000000" if code != "000000" else "111111"
        with pytest.raises(AuthenticationError):
            verify_submission(SubmissionKind.REGISTRATION, OWNER, wrong)
        assert has_pending(SubmissionKind.REGISTRATION, OWNER)
        verify_submission(SubmissionKind.REGISTRATION, OWNER, code)

    def test_kinds_are_kept_apart(self):
        code = stash_submission(SubmissionKind.REGISTRATION, OWNER, {})
        with pytest.raises(NotFoundError):
            verify_submission(SubmissionKind.CLAIM, OWNER, code)

    def test_owner_key_is_case_insensitive(self):
        code = stash_submission(SubmissionKind.REGISTRATION, OWNER.upper(), {})
        verify_submission(SubmissionKind.REGISTRATION, OWNER, code)

    def test_resubmission_replaces_previous(self):
        stash_submission(SubmissionKind.REGISTRATION, OWNER, {"v": 1})
        backdate_created(seconds=61)
        code = stash_submission(SubmissionKind.REGISTRATION, OWNER, {"v": 2})
        assert verify_submission(SubmissionKind.REGISTRATION, OWNER, code).payload == {"v": 2}

    def test_expired_entry_is_gone(self):
        code = stash_submission(SubmissionKind.CLAIM, OWNER, {})
        for entry in pending_submissions._pending.values():
            entry.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert not has_pending(SubmissionKind.CLAIM, OWNER)
        with pytest.raises(NotFoundError):
            verify_submission(SubmissionKind.CLAIM, OWNER, code)


class TestSubmissionAbuse:
    def test_entry_dropped_after_max_wrong_codes(self):
        code = stash_submission(SubmissionKind.CLAIM, OWNER, {"nspp": "510035070001"})
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(4):
            with pytest.raises(AuthenticationError):
                verify_submission(SubmissionKind.CLAIM, OWNER, wrong)
        assert has_pending(SubmissionKind.CLAIM, OWNER)

        with pytest.raises(AuthenticationError):
            verify_submission(SubmissionKind.CLAIM, OWNER, wrong)
        assert not has_pending(SubmissionKind.CLAIM, OWNER)
        # The right code no longer helps once the entry is gone
        with pytest.raises(NotFoundError):
            verify_submission(SubmissionKind.CLAIM, OWNER, code)

    def test_code_space_cannot_be_walked(self):
        code = stash_submission(SubmissionKind.CLAIM, OWNER, {})
        rejected = 0
        for candidate in (f"{n:06d}" for n in range(10**6)):
            if candidate == code:
                continue
            try:
                verify_submission(SubmissionKind.CLAIM, OWNER, candidate)
            except AuthenticationError:
                rejected += 1
            except NotFoundError:
                break
        assert rejected == 5
        assert not has_pending(SubmissionKind.CLAIM, OWNER)

    def test_resend_within_cooldown_is_rate_limited(self):
        stash_submission(SubmissionKind.REGISTRATION, OWNER, {"v": 1})
        with pytest.raises(RateLimitError) as exc_info:
            stash_submission(SubmissionKind.REGISTRATION, OWNER, {"v": 2})
        assert 0 < exc_info.value.details["retry_after_seconds"] <= 60

    def test_cooldown_is_per_kind_and_owner(self):
        stash_submission(SubmissionKind.REGISTRATION, OWNER, {})
        stash_submission(SubmissionKind.CLAIM, OWNER, {})
        stash_submission(SubmissionKind.REGISTRATION, "other@alhikmah.sch.id", {})

    def test_expired_entries_are_purged_on_stash(self):
        stash_submission(SubmissionKind.REGISTRATION, "a@example.id", {})
        stash_submission(SubmissionKind.CLAIM, "b@example.id", {})
        for entry in pending_submissions._pending.values():
            entry.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        stash_submission(SubmissionKind.REGISTRATION, OWNER, {})
        assert list(pending_submissions._pending) == [f"pending_registration:{OWNER}"]
