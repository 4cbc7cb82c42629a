"""
═══════════════════════════════════════════════════════════════════════════════
Membership — FastAPI Dependencies (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

``get_session`` never fails: a missing or bad token is an anonymous session,
which the gate endpoints turn into a login redirect. The API endpoints that
act on data use ``get_active_profile`` and fail with 401/403 instead.
"""

from __future__ import annotations

from fastapi import Depends, Header

from membership.config import get_settings
from membership.exceptions import AuthenticationError, AuthorizationError
from membership.models.access import AccessProfile, GatePages, Session
from membership.models.enums import AccountStatus
from membership.services.profile_resolver import resolve_access_profile
from membership.services.session import session_from_authorization


async def get_session(authorization: str | None = Header(None)) -> Session:
    """Session from the ``Authorization: Bearer <jwt>`` header."""
    return session_from_authorization(authorization)


def get_gate_pages() -> GatePages:
    return GatePages.from_settings(get_settings())


async def get_current_profile(session: Session = Depends(get_session)) -> AccessProfile:
    """
    The caller's AccessProfile.

    Raises:
        AuthenticationError(401): no session, or the profile is unresolvable.
    """
    if not session.is_authenticated or session.identity_id is None:
        raise AuthenticationError()
    profile = await resolve_access_profile(session.identity_id)
    if profile is None:
        raise AuthenticationError("Access profile unresolvable")
    return profile


async def get_active_profile(profile: AccessProfile = Depends(get_current_profile)) -> AccessProfile:
    """
    The caller's AccessProfile, only if the account is active.

    Raises:
        AuthorizationError(403): account pending or rejected.
    """
    if profile.account_status is not AccountStatus.ACTIVE:
        raise AuthorizationError(
            f"Account is {profile.account_status.value}",
            details={"account_status": profile.account_status.value},
        )
    return profile
