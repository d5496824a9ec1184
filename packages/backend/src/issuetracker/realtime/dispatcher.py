"""Event dispatcher — writes live events to every sink of a user.

Learn: Delivery is best-effort. A user with no open sink simply misses the
event (the durable Notification/Activity row is what they will read
later). A failing sink is logged and skipped; it never stops delivery to
the user's other sinks or to other users, and it never raises to the
service that triggered the event.
"""

import uuid
from typing import Iterable

import structlog
from starlette.requests import Request

from issuetracker.realtime.events import LiveEvent
from issuetracker.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


class EventDispatcher:
    """Fan-out of LiveEvents onto the connection registry."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def send(self, user_id: uuid.UUID, event: LiveEvent) -> int:
        """Deliver `event` to all of a user's sinks. Returns sinks written."""
        sinks = self.registry.sinks_for(user_id)
        if not sinks:
            logger.debug(
                "realtime.no_sinks",
                user_id=str(user_id),
                event_type=event.type.value,
            )
            return 0

        frame = event.to_frame()
        delivered = 0
        for sink in sinks:
            try:
                sink.write(frame)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "realtime.delivery_failed",
                    user_id=str(user_id),
                    event_type=event.type.value,
                    error=repr(e),
                )
        return delivered

    def broadcast(self, user_ids: Iterable[uuid.UUID], event: LiveEvent) -> int:
        """send() to each user. No ordering across users is implied."""
        return sum(self.send(uid, event) for uid in user_ids)


def get_dispatcher(request: Request) -> EventDispatcher:
    """FastAPI dependency — the app's dispatcher instance."""
    return request.app.state.dispatcher
