"""
Authentication and capability checks.

Tokens are issued by the identity service; this service only verifies them.
An access token carries the actor id (``sub``), the organization it acts for
(``organization_id``) and the granted ``capabilities``. Capabilities are
checked once here, at the boundary, so the domain services never look at
who the caller is beyond the actor id they record.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Header, status

from shared.config.settings import (
    JWT_SECRET,
    JWT_ISSUER,
    JWT_AUDIENCE,
    settings,
)
from shared.config.logging import get_logger
from shared.utils.exceptions import MissingCapabilityError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """Authenticated caller as seen by the engine."""

    actor_id: int
    organization_id: int
    capabilities: frozenset[str]

    def has(self, capability: str) -> bool:
        return capability in self.capabilities


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign an access token with the given claims.

    Used by the CLI and tests; in production tokens come from the identity
    service signed with the shared secret.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        HTTPException(401): If the token is invalid, expired or lacks the
            claims the engine relies on.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        # Actual reason goes to the log only
        logger.warning("JWT validation failed", error=str(e))
        raise _unauthorized("Invalid token")

    if "sub" not in payload:
        raise _unauthorized("Invalid token: missing subject claim")
    try:
        int(payload["sub"])
    except (ValueError, TypeError):
        raise _unauthorized("Invalid token: malformed subject claim")

    if not isinstance(payload.get("organization_id"), int):
        raise _unauthorized("Invalid token: missing or malformed organization_id claim")

    capabilities = payload.get("capabilities", [])
    if not isinstance(capabilities, list) or not all(isinstance(c, str) for c in capabilities):
        raise _unauthorized("Invalid token: malformed capabilities claim")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise _unauthorized("Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


def current_actor(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ActorContext:
    """
    FastAPI dependency returning the authenticated actor.

    Usage:
        @router.get("/sessions")
        def list_sessions(actor: ActorContext = Depends(current_actor)):
            ...
    """
    payload = verify_jwt(get_bearer_token(authorization))
    return ActorContext(
        actor_id=int(payload["sub"]),
        organization_id=payload["organization_id"],
        capabilities=frozenset(payload.get("capabilities", [])),
    )


def require_capability(capability: str) -> Callable[..., ActorContext]:
    """
    Build a dependency that admits only actors granted ``capability``.

    Usage:
        @router.post("/sessions/{session_id}/orders")
        def attach(actor: ActorContext = Depends(require_capability(Capabilities.MANAGE_CONSUMABLES))):
            ...

    Raises:
        MissingCapabilityError (403): If the capability is not granted.
    """

    def _dependency(actor: ActorContext = Depends(current_actor)) -> ActorContext:
        if not actor.has(capability):
            raise MissingCapabilityError(
                capability,
                actor_id=actor.actor_id,
                organization_id=actor.organization_id,
            )
        return actor

    return _dependency
