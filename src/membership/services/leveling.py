"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Leveling State Machine
═══════════════════════════════════════════════════════════════════════════════

basic → silver → gold → platinum, one tier at a time. Each tier requires the
fields of every tier below it plus its own:

    silver    institution_name, supervisor_name, short_address
    gold      + at least one social/media link, latitude, longitude
    platinum  + mission_vision, short_history

``attempt_promotion`` is pure and all-or-nothing. ``promote_institution``
persists the result with a compare-and-set update, so the stored level can
only move up, and fires the audit record and the event once per real
promotion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from membership import events
from membership.db.repositories import institution_repo
from membership.exceptions import (
    AlreadyAtOrAboveTargetError,
    ConflictError,
    ImmutableFieldsError,
    InvalidTransitionError,
    MissingFieldsError,
    NotFoundError,
    ValidationError,
)
from membership.models.enums import ProfileLevel
from membership.models.institution import InstitutionRead, PromotionRequest, PromotionResult
from membership.services.audit_logger import MembershipAuditAction, get_audit_logger
from membership.services.locks import institution_locks

logger = logging.getLogger(__name__)

# Set by the regional authority; never accepted from the institution itself
AUTHORITY_FIELDS: frozenset[str] = frozenset({"region_ref", "region_name", "city_name"})

PROFILE_FIELDS: frozenset[str] = frozenset({
    "institution_name",
    "supervisor_name",
    "short_address",
    "social_links",
    "latitude",
    "longitude",
    "mission_vision",
    "short_history",
})

SOCIAL_LINK_KEYS: tuple[str, ...] = ("instagram", "youtube", "tiktok", "facebook", "website")


# ═══════════════════════════════════════════════════════════════════════════════
# Requirement table
# ═══════════════════════════════════════════════════════════════════════════════

def _filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _has_social_link(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return any(_filled(value.get(key)) for key in SOCIAL_LINK_KEYS)


@dataclass(frozen=True)
class FieldRequirement:
    field: str
    check: Callable[[Any], bool] = _filled


LEVEL_REQUIREMENTS: Mapping[ProfileLevel, tuple[FieldRequirement, ...]] = {
    ProfileLevel.BASIC: (),
    ProfileLevel.SILVER: (
        FieldRequirement("institution_name"),
        FieldRequirement("supervisor_name"),
        FieldRequirement("short_address"),
    ),
    ProfileLevel.GOLD: (
        FieldRequirement("social_links", _has_social_link),
        FieldRequirement("latitude"),
        FieldRequirement("longitude"),
    ),
    ProfileLevel.PLATINUM: (
        FieldRequirement("mission_vision"),
        FieldRequirement("short_history"),
    ),
}


def required_fields(level: ProfileLevel) -> list[FieldRequirement]:
    """Cumulative requirements of ``level`` (its own plus every lower tier's)."""
    result: list[FieldRequirement] = []
    for tier in ProfileLevel:
        result.extend(LEVEL_REQUIREMENTS[tier])
        if tier is level:
            break
    return result


def missing_fields(level: ProfileLevel, candidate_fields: Mapping[str, Any]) -> list[str]:
    return [
        req.field for req in required_fields(level)
        if not req.check(candidate_fields.get(req.field))
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# Pure transition
# ═══════════════════════════════════════════════════════════════════════════════

def check_submitted_fields(fields: Mapping[str, Any]) -> None:
    """Rejects authority-set fields and names outside the level vocabulary."""
    immutable = AUTHORITY_FIELDS.intersection(fields)
    if immutable:
        raise ImmutableFieldsError(immutable)
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown profile fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )


def attempt_promotion(
    current_level: ProfileLevel,
    target_level: ProfileLevel,
    candidate_fields: Mapping[str, Any],
) -> ProfileLevel:
    """
    Validate a promotion and return the new level.

    Raises:
        ImmutableFieldsError: authority-set fields were submitted.
        AlreadyAtOrAboveTargetError: the target tier is already reached.
        InvalidTransitionError: target is not the tier directly above.
        MissingFieldsError: cumulative required fields are empty.
    """
    check_submitted_fields(candidate_fields)

    if current_level.reaches(target_level):
        raise AlreadyAtOrAboveTargetError(current_level.value, target_level.value)

    if current_level.next_level() is not target_level:
        raise InvalidTransitionError(current_level.value, target_level.value)

    missing = missing_fields(target_level, candidate_fields)
    if missing:
        raise MissingFieldsError(target_level.value, missing)

    return target_level


# ═══════════════════════════════════════════════════════════════════════════════
# Persisted promotion
# ═══════════════════════════════════════════════════════════════════════════════

async def promote_institution(
    institution_id: UUID,
    request: PromotionRequest,
    actor_id: UUID | None = None,
) -> PromotionResult:
    """
    Apply ``request`` to the stored institution.

    Submitted fields are merged over the stored ones before validation; on
    any error nothing is written.
    """
    async with institution_locks.for_institution(institution_id):
        row = await institution_repo.get_institution(institution_id)
        if row is None:
            raise NotFoundError("Institution", str(institution_id))
        institution = InstitutionRead.model_validate(row)
        current = institution.profile_level

        check_submitted_fields(request.fields)
        try:
            merged = InstitutionRead.model_validate({**row, **request.fields})
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid profile field values",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
        candidate = merged.level_fields()
        new_level = attempt_promotion(current, request.target_level, candidate)

        submitted = {name: candidate[name] for name in request.fields}
        updated = await institution_repo.promote_level(
            institution_id, current.value, new_level.value, submitted,
        )
        if updated is None:
            # Another worker moved the level between our read and write
            fresh = await institution_repo.get_institution(institution_id)
            if fresh and ProfileLevel(fresh["profile_level"]).reaches(new_level):
                raise AlreadyAtOrAboveTargetError(fresh["profile_level"], new_level.value)
            raise ConflictError(
                "Profile level changed concurrently, retry the promotion",
                details={"institution_id": str(institution_id)},
            )

    logger.info("Institution %s promoted %s → %s", institution_id, current.value, new_level.value)
    await get_audit_logger().log(
        MembershipAuditAction.PROFILE_PROMOTED,
        entity_type="institution",
        entity_id=str(institution_id),
        user_id=str(actor_id) if actor_id else None,
        details={"previous_level": current.value, "profile_level": new_level.value},
    )
    await events.emit_profile_promoted(str(institution_id), current.value, new_level.value)

    return PromotionResult(
        institution_id=institution_id,
        previous_level=current,
        profile_level=new_level,
    )
