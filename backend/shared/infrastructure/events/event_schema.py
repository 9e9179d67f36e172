"""
The one message shape published on every engine channel.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

ID_FIELDS = ("table_id", "session_id", "order_id")


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass
class Event:
    """
    `entity` holds the event-specific payload: `{table, event}` on the change
    feed, the notification or receipt body elsewhere. `actor` names the
    staff member whose action produced it.
    """

    type: str
    restaurant_id: int
    table_id: int | None = None
    session_id: int | None = None
    order_id: int | None = None
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise ValueError("Event type must be a non-empty string")
        if not _positive_int(self.restaurant_id):
            raise ValueError("Event restaurant_id must be a positive integer")
        bad_ids = [
            name for name in ID_FIELDS
            if getattr(self, name) is not None and not _positive_int(getattr(self, name))
        ]
        if bad_ids:
            raise ValueError(f"Event ids must be positive integers: {', '.join(bad_ids)}")
        for name in ("entity", "actor"):
            if not isinstance(getattr(self, name) or {}, dict):
                raise ValueError(f"Event {name} must be an object")

    def to_json(self) -> str:
        """Serialized payload; `ts` is stamped now when unset."""
        data = asdict(self)
        data["ts"] = self.ts or datetime.now(timezone.utc).isoformat()
        data["entity"] = self.entity or {}
        data["actor"] = self.actor or {}
        return json.dumps(data, ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str | bytes) -> Event:
        return cls(**json.loads(payload))
