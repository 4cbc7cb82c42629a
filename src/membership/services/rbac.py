"""
membership/services/rbac.py — Role checks for the HTTP API.

The route gate decides page access for the UI; these dependencies guard the
data endpoints behind it with the same closed role set.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from membership.exceptions import AuthorizationError
from membership.models.access import AccessProfile
from membership.models.enums import Role
from membership.models.institution import InstitutionRead

logger = logging.getLogger(__name__)


def has_role(profile: AccessProfile, *roles: Role) -> bool:
    return profile.role in roles


def can_manage_institution(profile: AccessProfile, institution: InstitutionRead) -> bool:
    """Central admins manage every institution, members only their own."""
    if profile.role is Role.CENTRAL_ADMIN:
        return True
    return profile.role is Role.MEMBER and institution.owner_identity_id == profile.identity_id


def ensure_institution_access(profile: AccessProfile, institution: InstitutionRead) -> None:
    if not can_manage_institution(profile, institution):
        logger.warning(
            "RBAC: %s (%s) denied access to institution %s",
            profile.identity_id, profile.role.value, institution.institution_id,
        )
        raise AuthorizationError(
            "No access to this institution",
            details={"institution_id": str(institution.institution_id)},
        )


def require_roles(*roles: Role):
    """FastAPI dependency: active profile with one of ``roles``."""
    from membership.dependencies import get_active_profile

    async def _check(profile: AccessProfile = Depends(get_active_profile)) -> AccessProfile:
        if not has_role(profile, *roles):
            logger.warning(
                "RBAC: %s denied, role=%s required=%s",
                profile.identity_id, profile.role.value, [r.value for r in roles],
            )
            raise AuthorizationError(
                "Insufficient role",
                details={"required": [r.value for r in roles]},
            )
        return profile
    return _check
