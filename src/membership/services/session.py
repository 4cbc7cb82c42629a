"""
membership/services/session.py — Session source.

Session tokens are issued by the identity provider; this service only
verifies them (HS256 shared secret or RS256 public key) and extracts the
identity reference. A missing or invalid token is an unauthenticated
session, never an error.
"""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import UUID

from jose import JWTError, jwt

from membership.config import get_settings
from membership.exceptions import AuthenticationError
from membership.models.access import Session

logger = logging.getLogger(__name__)

_public_key_cache: str | None = None


def _get_jwt_public_key() -> str | None:
    """PEM public key for RS256 verification, if configured."""
    global _public_key_cache
    settings = get_settings()
    if settings.jwt_public_key_path:
        if _public_key_cache is None:
            p = Path(settings.jwt_public_key_path)
            if p.is_file():
                _public_key_cache = p.read_text(encoding="utf-8")
        return _public_key_cache
    return None


def _get_jwt_algorithm() -> str:
    if _get_jwt_public_key():
        return "RS256"
    return get_settings().jwt_algorithm


def _get_jwt_verify_key() -> str:
    pub = _get_jwt_public_key()
    return pub if pub else get_settings().jwt_secret_key


def decode_token(token: str) -> dict:
    """Decodes and verifies a session JWT (HS256 or RS256)."""
    try:
        return jwt.decode(token, _get_jwt_verify_key(), algorithms=[_get_jwt_algorithm()])
    except JWTError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc


def session_from_authorization(authorization: str | None) -> Session:
    """
    Builds a Session from an ``Authorization`` header value.

    ``Bearer <jwt>`` with a valid signature and a UUID ``sub`` claim gives an
    authenticated session; anything else gives ``Session.anonymous()``.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return Session.anonymous()

    try:
        payload = decode_token(authorization[7:])
    except AuthenticationError as exc:
        logger.info("Session rejected: %s", exc.message)
        return Session.anonymous()

    try:
        identity_id = UUID(str(payload.get("sub")))
    except ValueError:
        logger.info("Session rejected: token 'sub' is not an identity id")
        return Session.anonymous()

    return Session(is_authenticated=True, identity_id=identity_id)
