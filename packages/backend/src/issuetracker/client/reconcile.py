"""Event → cache invalidation.

Learn: Dispatch is purely on `type` through a fixed table. The payload is
never trusted as data: it may be partial, or already stale by the time it
arrives, so the only safe reaction is to stale the affected queries and
let the next read re-fetch.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from issuetracker.client.cache import QueryCache
from issuetracker.realtime.events import EventType

logger = structlog.get_logger()

_ISSUE_QUERIES = ("issues", "issue", "activities")

INVALIDATIONS: dict[EventType, tuple[str, ...]] = {
    EventType.CONNECTED: (),
    EventType.NOTIFICATION: ("notifications",),
    EventType.ISSUE_CREATED: _ISSUE_QUERIES,
    EventType.ISSUE_UPDATED: _ISSUE_QUERIES,
    EventType.ISSUE_COMMENTED: _ISSUE_QUERIES,
    EventType.PROJECT_MEMBER_ADDED: ("project_members",),
    EventType.PROJECT_MEMBER_ROLE_CHANGED: ("project_members",),
    EventType.PROJECT_MEMBER_REMOVED: ("project_members", "projects"),
}


@dataclass(frozen=True)
class SSEMessage:
    data: str
    event: Optional[str] = None
    id: Optional[str] = None


class SSEParser:
    """Incremental Server-Sent Events line parser.

    Feed it one line at a time (without the trailing newline). A blank line
    completes a message; comment lines (keepalives) are dropped. A `retry:`
    field updates `retry_ms`.
    """

    def __init__(self):
        self._data: list[str] = []
        self._event: Optional[str] = None
        self._id: Optional[str] = None
        self.retry_ms: Optional[int] = None

    def feed(self, line: str) -> Optional[SSEMessage]:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            self._id = value
        elif field == "retry" and value.isdigit():
            self.retry_ms = int(value)
        return None

    def _dispatch(self) -> Optional[SSEMessage]:
        if not self._data:
            self._event = None
            return None
        message = SSEMessage(data="\n".join(self._data), event=self._event, id=self._id)
        self._data = []
        self._event = None
        return message


class Reconciler:
    """Turns raw `data:` payloads into cache invalidations."""

    def __init__(self, cache: QueryCache):
        self.cache = cache

    @staticmethod
    def parse(raw: str) -> Optional[tuple[EventType, dict[str, Any]]]:
        """Decode one frame. Malformed or unknown events yield None."""
        try:
            decoded = json.loads(raw)
        except (ValueError, RecursionError):
            logger.debug("realtime.client_malformed_frame", raw=raw[:200])
            return None
        if not isinstance(decoded, dict):
            return None
        try:
            event_type = EventType(decoded.get("type"))
        except ValueError:
            logger.debug("realtime.client_unknown_event", type=decoded.get("type"))
            return None
        payload = decoded.get("payload")
        return event_type, payload if isinstance(payload, dict) else {}

    def apply(self, raw: str) -> Optional[tuple[EventType, dict[str, Any]]]:
        parsed = self.parse(raw)
        if parsed is None:
            return None
        event_type, _ = parsed
        for name in INVALIDATIONS[event_type]:
            self.cache.invalidate(name)
        return parsed
