"""Notification bell routes — always scoped to the caller."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.schemas.notification import NotificationRead
from issuetracker.services.notification_service import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    NotificationService,
)

router = APIRouter(prefix="/notifications")


def _notification_svc(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(_notification_svc),
):
    return await svc.list_notifications(identity.user_id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(_notification_svc),
):
    with service_errors():
        await svc.mark_read(notification_id, identity.user_id)
    return {"message": "Notification marked as read"}


@router.post("/read-all")
async def mark_all_read(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(_notification_svc),
):
    updated = await svc.mark_all_read(identity.user_id)
    return {"message": "All notifications marked as read", "updated": updated}
