"""
Redis Channel Naming.
"""

from __future__ import annotations


def _validate_positive_id(id_value: int, name: str) -> None:
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_org_sessions(organization_id: int) -> str:
    """Channel for the live session board of one organization."""
    _validate_positive_id(organization_id, "organization_id")
    return f"org:{organization_id}:sessions"
