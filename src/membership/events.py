"""
membership/events.py — NATS Event Publisher.

Publishes domain events of the membership service to NATS:
    • ``membership.profile.promoted``         — an institution reached a new tier
    • ``membership.crew.added``               — a crew member was created
    • ``membership.crew.number_issued``       — a crew member received a number
    • ``membership.institution.activated``    — payment verified, NIP active
    • ``membership.account.decided``          — pending account approved or rejected

Graceful degradation: if NATS is unreachable (or ``EVENTS_ENABLED=false``)
the event is skipped with a log line; the business operation is never failed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient

from membership.config import get_settings

logger = logging.getLogger(__name__)

# ── Singleton NATS connection ─────────────────────────────────────────────

_nc: NATSClient | None = None


async def connect() -> NATSClient | None:
    """Connects to NATS unless already connected (or events are disabled)."""
    global _nc
    settings = get_settings()
    if not settings.events_enabled:
        return None
    if _nc is not None and _nc.is_connected:
        return _nc
    try:
        _nc = await nats.connect(settings.nats_url)
        logger.info("NATS publisher connected: %s", settings.nats_url)
        return _nc
    except Exception as exc:
        logger.warning("NATS connect failed (events will be skipped): %s", exc)
        _nc = None
        return None


async def disconnect() -> None:
    """Closes the NATS connection."""
    global _nc
    if _nc and _nc.is_connected:
        await _nc.drain()
        logger.info("NATS publisher disconnected")
    _nc = None


# ── Publishing ───────────────────────────────────────────────────────────

async def publish(subject: str, data: dict[str, Any]) -> None:
    """
    Publishes a JSON event to NATS.

    Args:
        subject: Message subject (e.g. ``membership.crew.added``).
        data: Payload, serialized to JSON.
    """
    nc = await connect()
    if nc is None:
        logger.debug("NATS unavailable, skipping event %s", subject)
        return
    try:
        payload = json.dumps(data, default=str).encode("utf-8")
        await nc.publish(subject, payload)
        logger.info("NATS event published: %s", subject)
    except Exception as exc:
        logger.warning("NATS publish failed for %s: %s", subject, exc)


# ── Membership domain helpers ────────────────────────────────────────────

async def emit_profile_promoted(institution_id: str, previous_level: str, new_level: str) -> None:
    await publish("membership.profile.promoted", {
        "event": "profile.promoted",
        "institution_id": institution_id,
        "previous_level": previous_level,
        "profile_level": new_level,
    })


async def emit_crew_added(crew_id: str, institution_id: str, role_code: str) -> None:
    await publish("membership.crew.added", {
        "event": "crew.added",
        "crew_id": crew_id,
        "institution_id": institution_id,
        "role_code": role_code,
    })


async def emit_number_issued(crew_id: str, institution_id: str, assigned_number: str) -> None:
    await publish("membership.crew.number_issued", {
        "event": "crew.number_issued",
        "crew_id": crew_id,
        "institution_id": institution_id,
        "assigned_number": assigned_number,
    })


async def emit_institution_activated(institution_id: str, nip: str) -> None:
    await publish("membership.institution.activated", {
        "event": "institution.activated",
        "institution_id": institution_id,
        "nip": nip,
    })


async def emit_account_decided(identity_id: str, account_status: str, decided_by: str) -> None:
    """Event: a regional admin approved or rejected a pending account."""
    await publish("membership.account.decided", {
        "event": "account.decided",
        "identity_id": identity_id,
        "account_status": account_status,
        "decided_by": decided_by,
    })
