"""Realtime emitter — the side-effect half of every mutation.

Learn: Services call this *after* their own commit. Two shapes of output:

1. notify(): persist a Notification row, commit, then push a `notification`
   event to that one recipient. The commit happens first so a client that
   re-fetches the moment the event lands already sees the row.
2. broadcast_to_project(): push a UI-refresh event (issue_created, ...) to
   the project audience minus the acting user.

Nothing here may fail the caller's request. Every path catches, logs and
moves on — the primary mutation has already succeeded.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Notification
from issuetracker.realtime.audience import MembershipResolver
from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.events import EventType, LiveEvent
from issuetracker.schemas.notification import NotificationRead

logger = structlog.get_logger()


class RealtimeEmitter:
    def __init__(self, db: AsyncSession, dispatcher: EventDispatcher):
        self.db = db
        self.dispatcher = dispatcher
        self.audience = MembershipResolver(db)

    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        body: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Optional[NotificationRead]:
        """Create a durable notification, then push it live. Never raises."""
        try:
            notification = Notification(
                user_id=user_id, type=type, title=title, body=body, link=link
            )
            self.db.add(notification)
            await self.db.commit()
            snapshot = NotificationRead.model_validate(notification)
        except Exception as e:
            logger.error(
                "notifications.create_failed",
                user_id=str(user_id),
                notification_type=type,
                error=repr(e),
            )
            await self._rollback()
            return None

        self.send_to_user(
            user_id,
            LiveEvent(EventType.NOTIFICATION, snapshot.model_dump(mode="json")),
        )
        return snapshot

    async def notify_many(
        self,
        user_ids: set[uuid.UUID],
        actor_id: uuid.UUID,
        type: str,
        title: str,
        body: Optional[str] = None,
        link: Optional[str] = None,
    ) -> None:
        """notify() each recipient except the acting user."""
        for uid in sorted(user_ids - {actor_id}, key=str):
            await self.notify(uid, type, title, body=body, link=link)

    def send_to_user(self, user_id: uuid.UUID, event: LiveEvent) -> None:
        try:
            self.dispatcher.send(user_id, event)
        except Exception as e:
            logger.error(
                "realtime.emit_failed",
                user_id=str(user_id),
                event_type=event.type.value,
                error=repr(e),
            )

    async def broadcast_to_project(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        event: LiveEvent,
    ) -> set[uuid.UUID]:
        """Push `event` to the project audience, excluding the actor.

        Returns the audience actually targeted (empty on any failure).
        """
        try:
            audience = await self.audience.audience_for_project(project_id)
            audience.discard(actor_id)
            self.dispatcher.broadcast(audience, event)
            return audience
        except Exception as e:
            logger.error(
                "realtime.broadcast_failed",
                project_id=str(project_id),
                event_type=event.type.value,
                error=repr(e),
            )
            return set()

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.error("db.rollback_failed", error=repr(e))
