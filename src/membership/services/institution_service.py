"""
membership/services/institution_service.py — Institution lookups and activation.

Activation is the payment-verified step: the institution becomes ``paid``
and receives its active NIP. Crew members added before that have no number
yet, so activation schedules their issuance in the background.
"""

from __future__ import annotations

import logging
from uuid import UUID

from membership import events
from membership.db.repositories import crew_repo, institution_repo
from membership.exceptions import ConflictError, NotFoundError
from membership.models.institution import EntitlementState, InstitutionActivation, InstitutionRead
from membership.services.audit_logger import MembershipAuditAction, get_audit_logger
from membership.services.locks import institution_locks

logger = logging.getLogger(__name__)


async def load_institution(institution_id: UUID) -> InstitutionRead:
    row = await institution_repo.get_institution(institution_id)
    if row is None:
        raise NotFoundError("Institution", str(institution_id))
    return InstitutionRead.model_validate(row)


async def load_entitlement_state(institution_id: UUID) -> EntitlementState:
    """Payment, level and roster size of one institution."""
    institution = await load_institution(institution_id)
    count = await crew_repo.count_for_institution(institution_id)
    return EntitlementState(
        payment_status=institution.payment_status,
        profile_level=institution.profile_level,
        crew_slot_count=count,
    )


async def activate_institution(
    institution_id: UUID,
    data: InstitutionActivation,
    actor_id: UUID | None = None,
) -> InstitutionRead:
    """Mark the institution paid, set its NIP and re-trigger crew number issuance."""
    from membership.services.crew_service import schedule_pending_issuance

    async with institution_locks.for_institution(institution_id):
        current = await load_institution(institution_id)
        if current.nip_active:
            # Issued member numbers embed the NIP, so it never changes once active
            if current.nip != data.nip:
                raise ConflictError(
                    "Institution already holds an active NIP",
                    details={"institution_id": str(institution_id), "nip": current.nip},
                )
            return current
        row = await institution_repo.activate_institution(institution_id, data.nip)
    if row is None:
        raise NotFoundError("Institution", str(institution_id))
    institution = InstitutionRead.model_validate(row)

    logger.info("Institution %s activated with NIP %s", institution_id, data.nip)
    audit = get_audit_logger()
    actor = str(actor_id) if actor_id else None
    await audit.log(
        MembershipAuditAction.PAYMENT_VERIFIED,
        entity_type="institution",
        entity_id=str(institution_id),
        user_id=actor,
    )
    await audit.log(
        MembershipAuditAction.NIP_ISSUED,
        entity_type="institution",
        entity_id=str(institution_id),
        user_id=actor,
        details={"nip": data.nip},
    )
    await events.emit_institution_activated(str(institution_id), data.nip)

    schedule_pending_issuance(institution_id)
    return institution
