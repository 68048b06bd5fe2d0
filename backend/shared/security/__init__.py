"""
Security module: token verification and capability checks.
"""

from shared.security.auth import (
    ActorContext,
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_actor,
    require_capability,
)

__all__ = [
    "ActorContext",
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_actor",
    "require_capability",
]
