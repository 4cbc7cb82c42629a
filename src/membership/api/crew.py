"""
membership/api/crew.py — Single crew member operations.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from membership.dependencies import get_active_profile
from membership.models.access import AccessProfile
from membership.models.crew import CrewMember, CrewRoleChange
from membership.services import crew_service, institution_service
from membership.services.rbac import ensure_institution_access

router = APIRouter(prefix="/crew", tags=["crew"])


async def _accessible_crew(crew_id: UUID, profile: AccessProfile) -> CrewMember:
    crew = await crew_service.get_crew_member(crew_id)
    institution = await institution_service.load_institution(crew.institution_id)
    ensure_institution_access(profile, institution)
    return crew


@router.get("/{crew_id}", response_model=CrewMember, summary="Crew member")
async def get_crew(crew_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    return await _accessible_crew(crew_id, profile)


@router.patch(
    "/{crew_id}/role",
    response_model=CrewMember,
    summary="Change role classification (number re-issued in the background)",
)
async def change_role(
    crew_id: UUID,
    body: CrewRoleChange,
    profile: AccessProfile = Depends(get_active_profile),
):
    await _accessible_crew(crew_id, profile)
    return await crew_service.change_crew_role(crew_id, body.role_code, actor_id=profile.identity_id)


@router.post(
    "/{crew_id}/number",
    response_model=CrewMember,
    summary="Issue the member number (no-op if already issued)",
)
async def issue_number(crew_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    await _accessible_crew(crew_id, profile)
    await crew_service.issue_assigned_number(crew_id, actor_id=profile.identity_id)
    return await crew_service.get_crew_member(crew_id)


@router.delete(
    "/{crew_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a crew member",
)
async def remove(crew_id: UUID, profile: AccessProfile = Depends(get_active_profile)):
    await _accessible_crew(crew_id, profile)
    await crew_service.remove_crew_member(crew_id, actor_id=profile.identity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
