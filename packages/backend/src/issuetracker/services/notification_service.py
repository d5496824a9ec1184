"""Notification service — the read side of the notification bell.

Learn: Rows are created by RealtimeEmitter.notify() as a side effect of
other users' actions. Here the recipient lists them and marks them read;
nobody else can touch them. Scoping every query by user_id is what
enforces that.
"""

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Notification
from issuetracker.services.errors import NotFoundError

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_notifications(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = DEFAULT_LIMIT,
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(min(limit, MAX_LIMIT))
        )
        if unread_only:
            query = query.where(Notification.read.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")
        await self.db.commit()

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await self.db.commit()
        return result.rowcount
