"""
membership/services/account_service.py — Account lifecycle decisions.

A pending account is approved or rejected exactly once, by a regional admin
of the same region. The decision never reverts.
"""

from __future__ import annotations

import logging
from uuid import UUID

from membership import events
from membership.db.repositories import profile_repo
from membership.exceptions import AuthorizationError, ConflictError, NotFoundError
from membership.models.access import AccessProfile, AccountDecision
from membership.models.enums import AccountStatus, Role
from membership.services.audit_logger import MembershipAuditAction, get_audit_logger

logger = logging.getLogger(__name__)


async def decide_account(
    identity_id: UUID,
    decision: AccountDecision,
    decided_by: AccessProfile,
) -> AccessProfile:
    """
    Apply a regional admin's decision to a pending account.

    Raises:
        AuthorizationError: caller is not a regional admin of the account's region.
        NotFoundError: no access profile for ``identity_id``.
        ConflictError: the account was already decided.
    """
    if decided_by.role is not Role.REGIONAL_ADMIN:
        raise AuthorizationError("Only a regional admin decides pending accounts")

    row = await profile_repo.get_access_profile(identity_id)
    if row is None:
        raise NotFoundError("Access profile", str(identity_id))
    if row["region_ref"] != decided_by.region_ref:
        logger.warning(
            "Regional admin %s (region %s) tried to decide %s of region %s",
            decided_by.identity_id, decided_by.region_ref, identity_id, row["region_ref"],
        )
        raise AuthorizationError(
            "Account belongs to another region",
            details={"region_ref": row["region_ref"]},
        )

    updated = await profile_repo.decide_account_status(identity_id, decision.status.value)
    if updated is None:
        raise ConflictError(
            "Account was already decided",
            details={"identity_id": str(identity_id), "account_status": row["account_status"]},
        )
    profile = AccessProfile.model_validate(updated)

    action = (
        MembershipAuditAction.CLAIM_APPROVED
        if profile.account_status is AccountStatus.ACTIVE
        else MembershipAuditAction.CLAIM_REJECTED
    )
    logger.info("Account %s decided: %s", identity_id, profile.account_status.value)
    await get_audit_logger().log(
        action,
        entity_type="access_profile",
        entity_id=str(identity_id),
        user_id=str(decided_by.identity_id),
        details={"region_ref": profile.region_ref},
    )
    await events.emit_account_decided(
        str(identity_id), profile.account_status.value, str(decided_by.identity_id),
    )
    return profile
