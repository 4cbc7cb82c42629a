"""
membership/api/access.py — Access profile and gate decisions for the UI shell.

GET /api/v1/access/profile            caller's AccessProfile (any status)
GET /api/v1/access/decision?path=...  Allow / RedirectTo for a UI path
"""

from fastapi import APIRouter, Depends, Query

from membership.dependencies import get_current_profile, get_gate_pages, get_session
from membership.models.access import AccessProfile, GateDecision, GatePages, Session
from membership.services.profile_resolver import resolve_access_profile
from membership.services.route_gate import evaluate_access

router = APIRouter(prefix="/access", tags=["access"])


@router.get(
    "/profile",
    response_model=AccessProfile,
    summary="AccessProfile of the caller",
)
async def my_profile(profile: AccessProfile = Depends(get_current_profile)):
    return profile


@router.get(
    "/decision",
    response_model=GateDecision,
    summary="Gate decision for a UI path",
)
async def decision(
    path: str = Query(..., min_length=1, examples=["/dashboard"]),
    session: Session = Depends(get_session),
    pages: GatePages = Depends(get_gate_pages),
):
    """
    Resolves the profile fresh on every call and runs both gate layers.

    Never answers with an error for gate outcomes; storage outages are 503.
    """
    profile = None
    if session.is_authenticated and session.identity_id is not None:
        profile = await resolve_access_profile(session.identity_id)
    return evaluate_access(session, profile, path, pages)
