"""
membership/api/internal.py — Internal endpoints for inter-service communication.

Other services fetch the minimal AccessProfile here without touching any
institution data.
"""

from uuid import UUID

from fastapi import APIRouter

from membership.exceptions import NotFoundError
from membership.models.access import AccessProfile
from membership.services.profile_resolver import resolve_access_profile

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get(
    "/profiles/{identity_id}",
    response_model=AccessProfile,
    summary="[Internal] AccessProfile by identity id",
)
async def get_profile(identity_id: UUID):
    profile = await resolve_access_profile(identity_id)
    if profile is None:
        raise NotFoundError("Access profile", str(identity_id))
    return profile
