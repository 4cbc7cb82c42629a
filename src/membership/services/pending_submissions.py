"""
membership/services/pending_submissions.py — Pending self-service submissions.

Registration and claim forms are parked here under a fixed key per kind until
the submitter proves control of their contact with a 6-digit one-time code.
Verification consumes and clears the entry. The store is advisory only:
nothing here ever feeds an AccessProfile.
"""

from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from membership.config import get_settings
from membership.exceptions import AuthenticationError, NotFoundError, RateLimitError
from membership.models.enums import SubmissionKind
from membership.models.submission import VerifiedSubmission

logger = logging.getLogger(__name__)

PENDING_KEYS: dict[SubmissionKind, str] = {
    SubmissionKind.REGISTRATION: "pending_registration",
    SubmissionKind.CLAIM: "pending_claim",
}


@dataclass
class _PendingEntry:
    payload: dict[str, Any]
    code: str
    created_at: datetime
    expires_at: datetime
    failed_attempts: int = 0


_pending: dict[str, _PendingEntry] = {}


def _key(kind: SubmissionKind, owner_key: str) -> str:
    return f"{PENDING_KEYS[kind]}:{owner_key.strip().lower()}"


def _purge_expired(now: datetime) -> int:
    expired = [key for key, entry in _pending.items() if entry.expires_at <= now]
    for key in expired:
        del _pending[key]
    return len(expired)


def generate_verification_code() -> str:
    """6-digit one-time code."""
    return f"{secrets.randbelow(10**6):06d}"


def stash_submission(kind: SubmissionKind, owner_key: str, payload: dict[str, Any]) -> str:
    """
    Park a submission and return its verification code.

    A second submission for the same kind and owner replaces the first one,
    but not before the resend cooldown has passed.
    Code delivery (email, WhatsApp) is up to the caller.

    Raises:
        RateLimitError: resubmitted within the cooldown.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    _purge_expired(now)

    key = _key(kind, owner_key)
    previous = _pending.get(key)
    if previous is not None:
        resend_at = previous.created_at + timedelta(seconds=settings.submission_resend_cooldown_seconds)
        if resend_at > now:
            raise RateLimitError(
                "A verification code was sent recently",
                retry_after=math.ceil((resend_at - now).total_seconds()),
            )

    code = generate_verification_code()
    _pending[key] = _PendingEntry(
        payload=dict(payload),
        code=code,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.submission_code_ttl_minutes),
    )
    if settings.app_env != "production":
        logger.info("Verification code for %s %s: %s (dev only)", kind.value, owner_key, code)
    return code


def has_pending(kind: SubmissionKind, owner_key: str) -> bool:
    entry = _pending.get(_key(kind, owner_key))
    return entry is not None and entry.expires_at > datetime.now(timezone.utc)


def verify_submission(kind: SubmissionKind, owner_key: str, code: str) -> VerifiedSubmission:
    """
    Consume a pending submission with its one-time code.

    Raises:
        NotFoundError: nothing pending for this owner (or it expired).
        AuthenticationError: wrong code. The entry stays for another try
            until ``submission_max_attempts`` wrong codes, then it is dropped.
    """
    key = _key(kind, owner_key)
    entry = _pending.get(key)
    now = datetime.now(timezone.utc)
    if entry is None or entry.expires_at <= now:
        _pending.pop(key, None)
        raise NotFoundError("Pending submission", PENDING_KEYS[kind])
    if not secrets.compare_digest(entry.code, code):
        entry.failed_attempts += 1
        if entry.failed_attempts >= get_settings().submission_max_attempts:
            del _pending[key]
            logger.warning("Pending %s for %s dropped after %d wrong codes",
                           kind.value, owner_key, entry.failed_attempts)
            raise AuthenticationError("Too many wrong codes; submit again for a new one")
        raise AuthenticationError("Invalid or expired verification code")

    del _pending[key]
    logger.info("Pending %s for %s verified", kind.value, owner_key)
    return VerifiedSubmission(
        kind=kind,
        owner_key=owner_key,
        payload=entry.payload,
        verified_at=now,
    )


def clear_pending() -> None:
    _pending.clear()
