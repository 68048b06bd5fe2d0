"""
Event Schema.

Defines the Event dataclass published for session lifecycle changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Unified event schema.

    ``entity`` holds event-specific data (code, amounts, invoice number).
    ``actor`` identifies who triggered the event.
    """

    type: str
    organization_id: int
    session_id: int | None = None
    table_id: int | None = None
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version

    def __post_init__(self) -> None:
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if not isinstance(self.organization_id, int) or self.organization_id <= 0:
            raise ValueError("Event organization_id must be a positive integer")

        for name in ("session_id", "table_id"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, int) or value <= 0):
                raise ValueError(f"Event {name} must be a positive integer or None")

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls(**json.loads(json_str))
