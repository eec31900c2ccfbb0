"""Bearer tokens for the /api request filter.

Tokens are JWTs signed with ``jwt_secret`` (HS256 unless ``jwt_algorithm``
says otherwise); the ``sub`` claim names the principal.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt  # python-jose

from streamline.core.config import Settings, get_settings
from streamline.core.exceptions import AuthenticationError

BEARER_PREFIX = "Bearer "


class TokenValidationError(AuthenticationError):
    """The Authorization header is missing, malformed or carries a bad JWT."""


def create_access_token(
    claims: Dict[str, Any],
    *,
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    settings = settings or get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str, *, settings: Settings | None = None) -> Dict[str, Any]:
    """Validate *token* and return its claims.

    Raises
    ------
    TokenValidationError
        If the token is malformed, expired, or signature-invalid.
    """
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise TokenValidationError("Invalid or expired JWT") from exc


def principal_from_authorization(header: str | None, *, settings: Settings | None = None) -> str:
    """Return the ``sub`` of a ``Bearer <jwt>`` header value."""
    if not header or not header.startswith(BEARER_PREFIX):
        raise TokenValidationError("Missing token")
    claims = decode_jwt(header.removeprefix(BEARER_PREFIX).strip(), settings=settings)
    principal = claims.get("sub")
    if not principal:
        raise TokenValidationError("Token has no subject")
    return str(principal)
