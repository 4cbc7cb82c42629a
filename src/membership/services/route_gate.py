"""
═══════════════════════════════════════════════════════════════════════════════
Membership — Global Route Gate (status layer, then role layer)
═══════════════════════════════════════════════════════════════════════════════

Pure, synchronous functions of already-resolved inputs. Nothing here performs
I/O, reads settings or raises: every call returns a ``GateDecision``.

    Layer 1  status_gate(session, profile, path, pages)
             unauthenticated / unresolvable → login
             pending  → pending page (the pending page itself is allowed)
             rejected → rejected page (the rejected page itself is allowed)
             active   → continue to layer 2

    Layer 2  role_gate(role, path, allowed_roles, pages)
             forbidden page → allow
             no required roles → allow
             role in required roles → allow, otherwise → forbidden page

A role mismatch always lands on the forbidden page, which is terminal: the
gate never infers a "home" dashboard for the caller's role.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal, assert_never

from membership.models.access import AccessProfile, GateDecision, GatePages, Session
from membership.models.enums import AccountStatus, Role

logger = logging.getLogger(__name__)


class ProfileState(Enum):
    """Marker for a profile fetch that has not completed yet."""
    LOADING = "loading"


PROFILE_LOADING = ProfileState.LOADING

ResolvedProfile = AccessProfile | None | Literal[ProfileState.LOADING]


# ═══════════════════════════════════════════════════════════════════════════════
# Route table
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RouteRule:
    """``prefix`` matches itself and everything below ``prefix/``; ``pattern`` is a full-path regex."""
    roles: frozenset[Role]
    prefix: str | None = None
    pattern: re.Pattern[str] | None = None

    def matches(self, path: str) -> bool:
        if self.prefix is not None:
            return path == self.prefix or path.startswith(self.prefix + "/")
        if self.pattern is not None:
            return self.pattern.fullmatch(path) is not None
        return False


_CENTRAL = frozenset({Role.CENTRAL_ADMIN})

ROUTE_TABLE: tuple[RouteRule, ...] = (
    RouteRule(_CENTRAL, prefix="/dashboard"),
    RouteRule(frozenset({Role.REGIONAL_ADMIN}), prefix="/regional-dashboard"),
    RouteRule(frozenset({Role.MEMBER}), prefix="/media-dashboard"),
    RouteRule(frozenset({Role.MEMBER}), prefix="/crew-dashboard"),
    RouteRule(_CENTRAL, prefix="/finance"),
    RouteRule(_CENTRAL, prefix="/majelis-militan"),
    RouteRule(_CENTRAL, pattern=re.compile(r"/admin/regional/[^/]+")),
)


def normalize_path(path: str) -> str:
    """Drops query string, fragment and a trailing slash (``/`` stays ``/``)."""
    path = path.split("?", 1)[0].split("#", 1)[0] or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def allowed_roles_for(path: str) -> frozenset[Role]:
    """Roles required by the first matching rule; empty for unlisted paths."""
    path = normalize_path(path)
    for rule in ROUTE_TABLE:
        if rule.matches(path):
            return rule.roles
    return frozenset()


# ═══════════════════════════════════════════════════════════════════════════════
# Layer 1: status gate
# ═══════════════════════════════════════════════════════════════════════════════

def status_gate(
    session: Session,
    profile: ResolvedProfile,
    path: str,
    pages: GatePages,
) -> GateDecision | None:
    """
    Account-lifecycle layer.

    Returns a terminal decision, or None when the identity is active and
    the role layer must decide.
    """
    path = normalize_path(path)

    if not session.is_authenticated:
        return GateDecision.redirect(pages.login)

    if profile is PROFILE_LOADING:
        return GateDecision.loading()

    if profile is None:
        logger.error(
            "ProfileUnresolvable: authenticated identity %s has no usable access profile",
            session.identity_id,
        )
        return GateDecision.redirect(pages.login)

    match profile.account_status:
        case AccountStatus.PENDING:
            if path == pages.pending:
                return GateDecision.allow()
            logger.info("Lifecycle block: %s is pending, %s → %s", profile.identity_id, path, pages.pending)
            return GateDecision.redirect(pages.pending)
        case AccountStatus.REJECTED:
            if path == pages.rejected:
                return GateDecision.allow()
            logger.info("Lifecycle block: %s is rejected, %s → %s", profile.identity_id, path, pages.rejected)
            return GateDecision.redirect(pages.rejected)
        case AccountStatus.ACTIVE:
            return None
        case _:
            assert_never(profile.account_status)


# ═══════════════════════════════════════════════════════════════════════════════
# Layer 2: role gate
# ═══════════════════════════════════════════════════════════════════════════════

def _is_granted(role: Role, allowed_roles: frozenset[Role]) -> bool:
    match role:
        case Role.CENTRAL_ADMIN | Role.REGIONAL_ADMIN | Role.FINANCE_ADMIN | Role.MEMBER:
            return role in allowed_roles
        case _:
            assert_never(role)


def role_gate(
    role: Role,
    path: str,
    allowed_roles: frozenset[Role],
    pages: GatePages,
) -> GateDecision:
    """Per-route role layer for active identities."""
    path = normalize_path(path)

    if path == pages.forbidden:
        return GateDecision.allow()
    if not allowed_roles:
        return GateDecision.allow()
    if _is_granted(role, allowed_roles):
        return GateDecision.allow()

    logger.warning(
        "RoleMismatch: role=%s requested %s (requires %s)",
        role.value, path, sorted(r.value for r in allowed_roles),
    )
    return GateDecision.redirect(pages.forbidden)


# ═══════════════════════════════════════════════════════════════════════════════
# Composition
# ═══════════════════════════════════════════════════════════════════════════════

def evaluate_access(
    session: Session,
    profile: ResolvedProfile,
    path: str,
    pages: GatePages,
) -> GateDecision:
    """Runs the status layer to completion, then the role layer."""
    decision = status_gate(session, profile, path, pages)
    if decision is not None:
        return decision
    # status_gate returns None only for a resolved, active profile
    assert isinstance(profile, AccessProfile)
    return role_gate(profile.role, path, allowed_roles_for(path), pages)
