"""Comment API routes."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.realtime.dispatcher import EventDispatcher, get_dispatcher
from issuetracker.schemas.comment import CommentCreate, CommentRead, CommentUpdate
from issuetracker.services.comment_service import CommentService

router = APIRouter()


def _comment_svc(
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> CommentService:
    return CommentService(db, dispatcher)


@router.get("/comments", response_model=list[CommentRead])
async def list_comments(
    issue_id: uuid.UUID = Query(...),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    with service_errors():
        return await svc.list_comments(issue_id, identity.user_id)


@router.post("/comments", response_model=CommentRead, status_code=201)
async def create_comment(
    body: CommentCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    with service_errors():
        return await svc.create_comment(body.issue_id, identity.user_id, body.content)


@router.patch("/comments/{comment_id}", response_model=CommentRead)
async def update_comment(
    comment_id: uuid.UUID,
    body: CommentUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    with service_errors():
        return await svc.update_comment(comment_id, identity.user_id, body.content)


@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    with service_errors():
        await svc.delete_comment(comment_id, identity.user_id)
