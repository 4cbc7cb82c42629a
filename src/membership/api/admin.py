"""
membership/api/admin.py — Regional administration: account decisions.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from membership.models.access import AccessProfile, AccountDecision
from membership.models.enums import Role
from membership.services import account_service
from membership.services.rbac import require_roles

router = APIRouter(prefix="/profiles", tags=["admin"])


@router.post(
    "/{identity_id}/decision",
    response_model=AccessProfile,
    summary="Approve or reject a pending account of the admin's region",
)
async def decide(
    identity_id: UUID,
    body: AccountDecision,
    admin: AccessProfile = Depends(require_roles(Role.REGIONAL_ADMIN)),
):
    return await account_service.decide_account(identity_id, body, admin)
