"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Crew Roster: Slot Allocator and Member Number Issuance
═══════════════════════════════════════════════════════════════════════════════

Adding a crew member is two separate steps:

    1. add     slot check + insert, serialized per institution; the record
               is valid with ``assigned_number = None``
    2. issue   member number (NIAM) derived from the institution's active
               NIP; may fail on its own without undoing step 1

NIAM layout: ``<NIP><role digit><2-digit sequence>``, role digit 1 for a
coordinator and 2 for a member. The number embeds the role, so a role change
clears it and re-runs issuance in the background, keeping the sequence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable
from uuid import UUID

from membership import events
from membership.config import get_settings
from membership.db.repositories import crew_repo, institution_repo
from membership.exceptions import IssuanceError, NotFoundError, SlotExhaustedError
from membership.models.crew import AddCrewResult, CrewCreate, CrewMember, IssuanceOutcome
from membership.models.enums import CrewRoleCode, Feature, IssuanceFailureReason
from membership.models.institution import EntitlementState, InstitutionRead
from membership.services.audit_logger import MembershipAuditAction, get_audit_logger
from membership.services.entitlements import require_unlocked
from membership.services.locks import institution_locks

logger = logging.getLogger(__name__)

ROLE_DIGITS: dict[CrewRoleCode, str] = {
    CrewRoleCode.COORDINATOR: "1",
    CrewRoleCode.MEMBER: "2",
}

MAX_SEQUENCE = 99

_KNOWN_REASONS = {r.value for r in IssuanceFailureReason}

_background_tasks: set[asyncio.Task] = set()


# ═══════════════════════════════════════════════════════════════════════════════
# Number format
# ═══════════════════════════════════════════════════════════════════════════════

def format_member_number(nip: str, role_code: CrewRoleCode, sequence: int) -> str:
    return f"{nip}{ROLE_DIGITS[role_code]}{sequence:02d}"


def sequence_of(number: str | None, nip: str) -> int | None:
    """Sequence part of a number issued under ``nip``; None if it does not parse."""
    if not number or not number.startswith(nip) or len(number) != len(nip) + 3:
        return None
    tail = number[len(nip) + 1:]
    return int(tail) if tail.isdigit() else None


def next_sequence(issued: Iterable[str], nip: str, preferred: int | None = None) -> int:
    """Lowest free sequence, or ``preferred`` when it is still free."""
    used = {seq for seq in (sequence_of(n, nip) for n in issued) if seq is not None}
    if preferred is not None and preferred not in used:
        return preferred
    for seq in range(1, MAX_SEQUENCE + 1):
        if seq not in used:
            return seq
    raise IssuanceError(
        IssuanceFailureReason.SEQUENCE_EXHAUSTED.value,
        f"No member number left under NIP {nip}",
        details={"nip": nip},
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Background work
# ═══════════════════════════════════════════════════════════════════════════════

def _spawn(coro, name: str) -> asyncio.Task:
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_background_done)
    return task


def _on_background_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if isinstance(exc, (IssuanceError, NotFoundError)):
        logger.warning("Background issuance %s not completed: %s", task.get_name(), exc.message)
    elif exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)


async def wait_for_background_tasks() -> None:
    """Wait until scheduled issuance work has finished (shutdown, tests)."""
    while _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Issuance
# ═══════════════════════════════════════════════════════════════════════════════

async def issue_assigned_number(
    crew_id: UUID,
    *,
    preferred_sequence: int | None = None,
    actor_id: UUID | None = None,
) -> str:
    """
    Issue the member number of ``crew_id``.

    Idempotent: a record that already has a number gets it back unchanged.

    Raises:
        NotFoundError: the crew record does not exist.
        IssuanceError: the institution is missing or has no active NIP, the
            sequence is used up, or the role changed before the write.
    """
    crew = await crew_repo.get_crew(crew_id)
    if crew is None:
        raise NotFoundError("Crew member", str(crew_id))
    if crew["assigned_number"]:
        return crew["assigned_number"]

    institution_id = crew["institution_id"]
    async with institution_locks.for_institution(institution_id):
        row = await institution_repo.get_institution(institution_id)
        if row is None:
            raise IssuanceError(
                IssuanceFailureReason.INSTITUTION_MISSING.value,
                "Owning institution no longer exists",
                details={"crew_id": str(crew_id), "institution_id": str(institution_id)},
            )
        institution = InstitutionRead.model_validate(row)
        if not institution.nip or not institution.nip_active:
            raise IssuanceError(
                IssuanceFailureReason.INSTITUTION_NOT_ACTIVATED.value,
                "Institution has no active NIP yet; the member number will follow activation",
                details={"crew_id": str(crew_id), "institution_id": str(institution_id)},
            )

        # Re-read under the lock: a concurrent call may have issued already
        crew = await crew_repo.get_crew(crew_id)
        if crew is None:
            raise NotFoundError("Crew member", str(crew_id))
        if crew["assigned_number"]:
            return crew["assigned_number"]

        issued = await crew_repo.list_issued_numbers(institution_id)
        sequence = next_sequence(issued, institution.nip, preferred_sequence)
        number = format_member_number(institution.nip, CrewRoleCode(crew["role_code"]), sequence)
        updated = await crew_repo.set_number_if_empty(crew_id, number, crew["role_code"])
        if updated is None:
            current = await crew_repo.get_crew(crew_id)
            if current is None:
                raise NotFoundError("Crew member", str(crew_id))
            if current["assigned_number"]:
                return current["assigned_number"]
            # Role rewritten since the read; its own reissue owns the number
            raise IssuanceError(
                IssuanceFailureReason.ROLE_CHANGED.value,
                "Role changed while the number was being issued",
                details={"crew_id": str(crew_id), "role_code": current["role_code"]},
            )

    logger.info("Member number %s issued to crew %s", number, crew_id)
    await get_audit_logger().log(
        MembershipAuditAction.NIAM_ISSUED,
        entity_type="crew_member",
        entity_id=str(crew_id),
        user_id=str(actor_id) if actor_id else None,
        details={"assigned_number": number, "institution_id": str(institution_id)},
    )
    await events.emit_number_issued(str(crew_id), str(institution_id), number)
    return number


async def try_issue(crew_id: UUID, actor_id: UUID | None = None) -> IssuanceOutcome:
    """Issuance as a secondary result: failures become a warning outcome."""
    try:
        number = await issue_assigned_number(crew_id, actor_id=actor_id)
    except IssuanceError as exc:
        logger.warning("Member number not issued for crew %s: %s", crew_id, exc.reason)
        return IssuanceOutcome(
            issued=False,
            reason=IssuanceFailureReason(exc.reason) if exc.reason in _KNOWN_REASONS else None,
            message=exc.message,
        )
    return IssuanceOutcome(issued=True, assigned_number=number)


def schedule_pending_issuance(institution_id: UUID) -> asyncio.Task:
    """Issue numbers for every crew member of the institution that lacks one."""
    return _spawn(_issue_pending(institution_id), name=f"issue-pending-{institution_id}")


async def _issue_pending(institution_id: UUID) -> None:
    for crew in await crew_repo.list_for_institution(institution_id):
        if not crew["assigned_number"]:
            await issue_assigned_number(crew["crew_id"])


# ═══════════════════════════════════════════════════════════════════════════════
# Roster operations
# ═══════════════════════════════════════════════════════════════════════════════

async def _roster_state(institution_id: UUID) -> EntitlementState:
    row = await institution_repo.get_institution(institution_id)
    if row is None:
        raise NotFoundError("Institution", str(institution_id))
    return EntitlementState(
        payment_status=row["payment_status"],
        profile_level=row["profile_level"],
        crew_slot_count=await crew_repo.count_for_institution(institution_id),
    )


async def add_crew_member(
    institution_id: UUID,
    data: CrewCreate,
    actor_id: UUID | None = None,
) -> AddCrewResult:
    """
    Add a crew member, then try to issue its number.

    Raises:
        NotFoundError: unknown institution.
        FeatureLockedError: institution unpaid (reason ``unpaid``).
        SlotExhaustedError: free quota used up; nothing was created.
    """
    capacity = get_settings().crew_free_slots
    async with institution_locks.for_institution(institution_id):
        state = await _roster_state(institution_id)
        require_unlocked(Feature.CREW_ADD, state, capacity)
        row = await crew_repo.create_within_capacity(
            institution_id,
            data.name,
            data.whatsapp,
            data.skill,
            data.role_code.value,
            capacity,
        )
        if row is None:
            raise SlotExhaustedError(Feature.CREW_ADD.value, capacity)
    created = CrewMember.model_validate(row)

    logger.info("Crew %s added to institution %s", created.crew_id, institution_id)
    await get_audit_logger().log(
        MembershipAuditAction.CREW_ADDED,
        entity_type="crew_member",
        entity_id=str(created.crew_id),
        user_id=str(actor_id) if actor_id else None,
        details={"institution_id": str(institution_id), "role_code": created.role_code.value},
    )
    await events.emit_crew_added(str(created.crew_id), str(institution_id), created.role_code.value)

    issuance = await try_issue(created.crew_id, actor_id)
    if issuance.issued:
        created = created.model_copy(update={"assigned_number": issuance.assigned_number})
    return AddCrewResult(created=created, issuance=issuance)


async def list_crew(institution_id: UUID) -> list[CrewMember]:
    return [CrewMember.model_validate(r) for r in await crew_repo.list_for_institution(institution_id)]


async def get_crew_member(crew_id: UUID) -> CrewMember:
    row = await crew_repo.get_crew(crew_id)
    if row is None:
        raise NotFoundError("Crew member", str(crew_id))
    return CrewMember.model_validate(row)


async def change_crew_role(
    crew_id: UUID,
    role_code: CrewRoleCode,
    actor_id: UUID | None = None,
) -> CrewMember:
    """
    Change the role classification of a crew member.

    The old number is cleared right away; the new one is issued by a
    background task and does not delay this call. Runs under the institution
    lock so an issuance in flight finishes with the old role first.
    """
    crew = await get_crew_member(crew_id)
    require_unlocked(Feature.CREW_EDIT, await _roster_state(crew.institution_id))

    async with institution_locks.for_institution(crew.institution_id):
        crew = await get_crew_member(crew_id)
        if crew.role_code is role_code:
            return crew

        changed = await crew_repo.change_role(crew_id, role_code.value)
        if changed is None:
            raise NotFoundError("Crew member", str(crew_id))
        row, previous_number = changed
        updated = CrewMember.model_validate(row)

        preferred = None
        institution = await institution_repo.get_institution(crew.institution_id)
        if institution and institution["nip"]:
            preferred = sequence_of(previous_number, institution["nip"])

    logger.info("Crew %s role %s → %s", crew_id, crew.role_code.value, role_code.value)
    await get_audit_logger().log(
        MembershipAuditAction.ROLE_CHANGED,
        entity_type="crew_member",
        entity_id=str(crew_id),
        user_id=str(actor_id) if actor_id else None,
        details={
            "previous_role": crew.role_code.value,
            "role_code": role_code.value,
            "previous_number": previous_number,
        },
    )

    _spawn(
        issue_assigned_number(crew_id, preferred_sequence=preferred, actor_id=actor_id),
        name=f"reissue-{crew_id}",
    )
    return updated


async def remove_crew_member(crew_id: UUID, actor_id: UUID | None = None) -> None:
    crew = await get_crew_member(crew_id)
    require_unlocked(Feature.CREW_REMOVE, await _roster_state(crew.institution_id))
    async with institution_locks.for_institution(crew.institution_id):
        if not await crew_repo.delete_crew(crew_id):
            raise NotFoundError("Crew member", str(crew_id))

    logger.info("Crew %s removed from institution %s", crew_id, crew.institution_id)
    await get_audit_logger().log(
        MembershipAuditAction.CREW_DELETED,
        entity_type="crew_member",
        entity_id=str(crew_id),
        user_id=str(actor_id) if actor_id else None,
        details={
            "institution_id": str(crew.institution_id),
            "assigned_number": crew.assigned_number,
        },
    )
