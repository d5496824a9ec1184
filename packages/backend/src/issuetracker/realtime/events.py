"""Live event types and wire framing.

Learn: Every frame on the stream is `data: <json>\\n\\n` where the JSON is
{"type": ..., "payload": {...}}. Keepalives are SSE comment lines, which
EventSource silently ignores.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """The closed set of event types the server emits."""

    CONNECTED = "connected"
    NOTIFICATION = "notification"
    ISSUE_CREATED = "issue_created"
    ISSUE_UPDATED = "issue_updated"
    ISSUE_COMMENTED = "issue_commented"
    PROJECT_MEMBER_ADDED = "project_member_added"
    PROJECT_MEMBER_ROLE_CHANGED = "project_member_role_changed"
    PROJECT_MEMBER_REMOVED = "project_member_removed"


KEEPALIVE_FRAME = ": ping\n\n"


@dataclass(frozen=True)
class LiveEvent:
    """An immutable tagged payload pushed to connected clients."""

    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "payload": self.payload}

    def to_frame(self) -> str:
        """Serialize to a single SSE `data:` frame."""
        return f"data: {json.dumps(self.to_dict(), default=str)}\n\n"
