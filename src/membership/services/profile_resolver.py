"""
membership/services/profile_resolver.py — Access profile resolution.

``resolve_access_profile`` fetches the minimal security record for one
identity, independently of any institution data. ``NavigationController``
ties fetches to navigations: each navigation cancels the fetch in flight and
bumps a generation counter, so a late result for an old path is dropped
instead of being applied to the new one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from membership.db.repositories import profile_repo
from membership.models.access import AccessProfile, DecisionKind, GateDecision, GatePages, Session
from membership.services.route_gate import PROFILE_LOADING, evaluate_access

logger = logging.getLogger(__name__)

ProfileFetcher = Callable[[UUID], Awaitable["AccessProfile | None"]]


async def resolve_access_profile(identity_id: UUID) -> AccessProfile | None:
    """
    Fetch the AccessProfile of ``identity_id``.

    Returns None when the profile is missing or malformed (e.g. a role
    outside the closed set); both are backend consistency faults and are
    logged at ERROR. Storage outages propagate as StorageUnavailableError.
    """
    row = await profile_repo.get_access_profile(identity_id)
    if row is None:
        logger.error("ProfileUnresolvable: no access profile for identity %s", identity_id)
        return None
    try:
        return AccessProfile.model_validate(row)
    except PydanticValidationError as exc:
        logger.error(
            "ProfileUnresolvable: malformed access profile for identity %s: %s",
            identity_id, exc.errors(include_url=False),
        )
        return None


class NavigationController:
    """
    Gate decisions for one session across successive navigations.

    Usage::

        nav = NavigationController(session, pages)
        nav.navigate("/dashboard")      # decision is Loading right away
        decision = await nav.settle()   # Allow / RedirectTo once resolved
    """

    def __init__(
        self,
        session: Session,
        pages: GatePages,
        fetch_profile: ProfileFetcher = resolve_access_profile,
    ) -> None:
        self._session = session
        self._pages = pages
        self._fetch_profile = fetch_profile
        self._generation = 0
        self._path: str | None = None
        self._task: asyncio.Task | None = None
        self._decision: GateDecision = GateDecision.loading()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def decision(self) -> GateDecision:
        """Latest decision; Loading while the fetch for the current path is in flight."""
        return self._decision

    def navigate(self, path: str) -> int:
        """Start gating ``path``; cancels any fetch for the previous path."""
        self._cancel_in_flight()
        self._generation += 1
        self._path = path
        # Unauthenticated sessions are decided without waiting for a fetch
        self._decision = evaluate_access(self._session, PROFILE_LOADING, path, self._pages)
        if self._decision.kind is not DecisionKind.LOADING:
            self._task = None
            return self._generation
        self._task = asyncio.create_task(self._resolve(self._generation, path))
        return self._generation

    def invalidate(self) -> int | None:
        """Profile changed server-side: re-resolve the current path, dropping the old decision."""
        if self._path is None:
            return None
        return self.navigate(self._path)

    async def settle(self) -> GateDecision:
        """Wait for the fetch of the latest navigation and return its decision."""
        while True:
            task = self._task
            if task is None or task.done() and not task.cancelled():
                if task is not None:
                    task.result()
                return self._decision
            try:
                await task
            except asyncio.CancelledError:
                if task.cancelled() and task is not self._task:
                    continue
                raise

    async def close(self) -> None:
        self._cancel_in_flight()

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Cancelled profile fetch for %s (generation %d)", self._path, self._generation)

    async def _resolve(self, generation: int, path: str) -> None:
        profile = await self._fetch_profile(self._session.identity_id)
        if generation != self._generation:
            logger.debug("Discarding stale profile for %s (generation %d)", path, generation)
            return
        self._decision = evaluate_access(self._session, profile, path, self._pages)
