"""
membership/models/submission.py — Pending self-service submissions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from membership.models.common import MembershipBase
from membership.models.enums import SubmissionKind


class SubmissionCreate(MembershipBase):
    owner_key: str = Field(..., min_length=3, max_length=255, description="Email or phone of the submitter")
    payload: dict[str, Any] = Field(default_factory=dict)


class SubmissionVerify(MembershipBase):
    owner_key: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., pattern=r"^\d{6}$")


class VerifiedSubmission(MembershipBase):
    kind: SubmissionKind
    owner_key: str
    payload: dict[str, Any]
    status: str = "verified_pending_payment"
    verified_at: datetime
