"""
membership/api/submissions.py — Pending registration / claim submissions.

POST /api/v1/submissions/{kind}         park the form, send a one-time code
POST /api/v1/submissions/{kind}/verify  consume it with the code
"""

from fastapi import APIRouter, status

from membership.config import get_settings
from membership.models.enums import SubmissionKind
from membership.models.submission import SubmissionCreate, SubmissionVerify, VerifiedSubmission
from membership.services import pending_submissions

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post(
    "/{kind}",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Park a submission until its code is verified",
)
async def submit(kind: SubmissionKind, body: SubmissionCreate):
    pending_submissions.stash_submission(kind, body.owner_key, body.payload)
    return {
        "kind": kind.value,
        "owner_key": body.owner_key,
        "status": "pending_verification",
        "expires_in_minutes": get_settings().submission_code_ttl_minutes,
    }


@router.post(
    "/{kind}/verify",
    response_model=VerifiedSubmission,
    summary="Verify and consume a pending submission",
)
async def verify(kind: SubmissionKind, body: SubmissionVerify):
    return pending_submissions.verify_submission(kind, body.owner_key, body.code)
