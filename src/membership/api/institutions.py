"""
membership/api/institutions.py — Institution endpoints: entitlements,
promotion, activation and the crew roster.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from membership.dependencies import get_active_profile
from membership.models.access import AccessProfile
from membership.models.crew import AddCrewResult, CrewCreate, CrewMember
from membership.models.enums import Role
from membership.models.institution import (
    EntitlementView,
    InstitutionActivation,
    InstitutionRead,
    PromotionRequest,
    PromotionResult,
)
from membership.services import crew_service, institution_service, leveling
from membership.services.entitlements import entitlement_view
from membership.services.rbac import ensure_institution_access, require_roles

router = APIRouter(prefix="/institutions", tags=["institutions"])


async def _accessible_institution(institution_id: UUID, profile: AccessProfile) -> InstitutionRead:
    institution = await institution_service.load_institution(institution_id)
    ensure_institution_access(profile, institution)
    return institution


@router.get(
    "/{institution_id}",
    response_model=InstitutionRead,
    summary="Institution business profile",
)
async def get_institution(institution_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    return await _accessible_institution(institution_id, profile)


@router.get(
    "/{institution_id}/entitlements",
    response_model=EntitlementView,
    summary="Lock state of every feature",
)
async def get_entitlements(institution_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    await _accessible_institution(institution_id, profile)
    state = await institution_service.load_entitlement_state(institution_id)
    return entitlement_view(institution_id, state)


@router.post(
    "/{institution_id}/promotion",
    response_model=PromotionResult,
    summary="Promote the profile to the next tier",
)
async def promote(
    institution_id: UUID,
    body: PromotionRequest,
    profile: AccessProfile = Depends(get_active_profile),
):
    await _accessible_institution(institution_id, profile)
    return await leveling.promote_institution(institution_id, body, actor_id=profile.identity_id)


@router.post(
    "/{institution_id}/activation",
    response_model=InstitutionRead,
    summary="Payment verified: activate the institution and its NIP",
)
async def activate(
    institution_id: UUID,
    body: InstitutionActivation,
    profile: AccessProfile = Depends(require_roles(Role.FINANCE_ADMIN, Role.CENTRAL_ADMIN)),
):
    return await institution_service.activate_institution(
        institution_id, body, actor_id=profile.identity_id,
    )


@router.get(
    "/{institution_id}/crew",
    response_model=list[CrewMember],
    summary="Crew roster",
)
async def list_crew(institution_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    await _accessible_institution(institution_id, profile)
    return await crew_service.list_crew(institution_id)


@router.post(
    "/{institution_id}/crew",
    response_model=AddCrewResult,
    status_code=status.HTTP_201_CREATED,
    summary="Add a crew member (number issued when possible)",
)
async def add_crew(
    institution_id: UUID,
    body: CrewCreate,
    profile: AccessProfile = Depends(get_active_profile),
):
    """
    201 even when no number could be issued: ``issuance`` then carries the
    reason (e.g. ``institution_not_activated``).
    """
    await _accessible_institution(institution_id, profile)
    return await crew_service.add_crew_member(institution_id, body, actor_id=profile.identity_id)
