"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Domain Exception Hierarchy
═══════════════════════════════════════════════════════════════════════════════

Base class ``MembershipError``. HTTP mapping of codes lives in
``membership.main:membership_error_handler``.

Gate evaluation never raises: the status and role gates return decision
values. These exceptions cover the service operations around them
(promotion, crew roster, identifier issuance) and genuine infrastructure
faults.
"""

from __future__ import annotations

from typing import Iterable


class MembershipError(Exception):
    """
    Base exception for every domain error of the membership service.

    Attributes
    ──────────
        message (str):  Human readable description, sent to the client.
        code (str):     String code, mapped to an HTTP status.
        details (dict): Extra data (entity, id, missing fields, lock reason).
    """

    def __init__(
        self,
        message: str,
        code: str = "MEMBERSHIP_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(MembershipError):
    """401 Unauthorized."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="MEMBERSHIP_AUTH_ERROR")


class AuthorizationError(MembershipError):
    """403 Forbidden."""

    def __init__(self, message: str = "Insufficient permissions", details: dict | None = None):
        super().__init__(message, code="MEMBERSHIP_AUTHZ_ERROR", details=details)


class NotFoundError(MembershipError):
    """404 Not Found."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="MEMBERSHIP_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(MembershipError):
    """409 Conflict."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="MEMBERSHIP_CONFLICT", details=details)


class ValidationError(MembershipError):
    """422 Unprocessable Entity."""

    def __init__(self, message: str, code: str = "MEMBERSHIP_VALIDATION_ERROR", details: dict | None = None):
        super().__init__(message, code=code, details=details)


class RateLimitError(MembershipError):
    """429 Too Many Requests."""

    def __init__(self, message: str = "Too many requests", retry_after: int | None = None):
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(message, code="MEMBERSHIP_RATE_LIMITED", details=details)


# ═══════════════════════════════════════════════════════════════════════════════
# Leveling
# ═══════════════════════════════════════════════════════════════════════════════

class InvalidTransitionError(ValidationError):
    """Promotion target is not the tier directly above the current one."""

    def __init__(self, current_level: str, target_level: str, message: str | None = None,
                 code: str = "MEMBERSHIP_INVALID_TRANSITION"):
        super().__init__(
            message or f"Cannot promote from '{current_level}' to '{target_level}'",
            code=code,
            details={"current_level": current_level, "target_level": target_level},
        )


class AlreadyAtOrAboveTargetError(InvalidTransitionError):
    """The institution already holds the requested tier (or a higher one)."""

    def __init__(self, current_level: str, target_level: str):
        super().__init__(
            current_level,
            target_level,
            message=f"Profile level '{current_level}' already reaches '{target_level}'",
            code="MEMBERSHIP_ALREADY_AT_LEVEL",
        )


class MissingFieldsError(ValidationError):
    """Required fields for the target tier are empty; nothing was applied."""

    def __init__(self, target_level: str, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required fields for '{target_level}': {', '.join(self.missing)}",
            code="MEMBERSHIP_MISSING_FIELDS",
            details={"target_level": target_level, "missing": self.missing},
        )


class ImmutableFieldsError(ValidationError):
    """Self-service submission tried to change authority-set fields."""

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(
            f"Fields are set by the regional authority and cannot be submitted: {', '.join(self.fields)}",
            code="MEMBERSHIP_IMMUTABLE_FIELDS",
            details={"fields": self.fields},
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Entitlements / crew roster
# ═══════════════════════════════════════════════════════════════════════════════

class FeatureLockedError(MembershipError):
    """An entitlement lock denies the feature; ``reason`` drives the remediation."""

    def __init__(self, feature: str, reason: str, code: str = "MEMBERSHIP_FEATURE_LOCKED"):
        self.feature = feature
        self.reason = reason
        super().__init__(
            f"Feature '{feature}' is locked: {reason}",
            code=code,
            details={"feature": feature, "reason": reason},
        )


class SlotExhaustedError(FeatureLockedError):
    """The free crew quota of the institution is used up."""

    def __init__(self, feature: str, capacity: int):
        super().__init__(feature, "slot_exhausted", code="MEMBERSHIP_SLOT_EXHAUSTED")
        self.details["capacity"] = capacity


class IssuanceError(MembershipError):
    """A member number could not be issued; the crew record itself stays valid."""

    def __init__(self, reason: str, message: str, details: dict | None = None):
        self.reason = reason
        super().__init__(
            message,
            code="MEMBERSHIP_ISSUANCE_FAILED",
            details={"reason": reason, **(details or {})},
        )


class StorageUnavailableError(MembershipError):
    """Backing store unreachable: a hard fault for the top-level handler, 503."""

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, code="MEMBERSHIP_STORAGE_UNAVAILABLE")


__all__ = [
    "MembershipError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "InvalidTransitionError",
    "AlreadyAtOrAboveTargetError",
    "MissingFieldsError",
    "ImmutableFieldsError",
    "FeatureLockedError",
    "SlotExhaustedError",
    "IssuanceError",
    "StorageUnavailableError",
]
