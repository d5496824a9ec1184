"""Issue API routes.

Learn: PATCH passes `model_dump(exclude_unset=True)` down to the service,
so "field absent" (leave alone) and "field: null" (clear it) stay
distinguishable all the way to the diff.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.realtime.dispatcher import EventDispatcher, get_dispatcher
from issuetracker.schemas.issue import (
    PRIORITY_PATTERN,
    STATUS_PATTERN,
    IssueCreate,
    IssueRead,
    IssueUpdate,
)
from issuetracker.services.issue_service import IssueService

router = APIRouter()


def _issue_svc(
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> IssueService:
    return IssueService(db, dispatcher)


@router.post("/issues", response_model=IssueRead, status_code=201)
async def create_issue(
    body: IssueCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: IssueService = Depends(_issue_svc),
):
    with service_errors():
        return await svc.create_issue(
            actor_id=identity.user_id,
            project_id=body.project_id,
            title=body.title,
            description=body.description,
            status=body.status,
            priority=body.priority,
            assignee_id=body.assignee_id,
            label_ids=body.label_ids,
        )


@router.get("/issues", response_model=list[IssueRead])
async def list_issues(
    project_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    assignee_id: Optional[uuid.UUID] = Query(None),
    q: Optional[str] = Query(None, description="Search title and description"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: IssueService = Depends(_issue_svc),
):
    with service_errors():
        return await svc.list_issues(
            identity.user_id,
            project_id=project_id,
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            q=q,
        )


@router.get("/issues/{issue_id}", response_model=IssueRead)
async def get_issue(
    issue_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: IssueService = Depends(_issue_svc),
):
    with service_errors():
        return await svc.get_issue(issue_id, identity.user_id)


@router.patch("/issues/{issue_id}", response_model=IssueRead)
async def update_issue(
    issue_id: uuid.UUID,
    body: IssueUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: IssueService = Depends(_issue_svc),
):
    with service_errors():
        return await svc.update_issue(
            issue_id, identity.user_id, body.model_dump(exclude_unset=True)
        )


@router.delete("/issues/{issue_id}", status_code=204)
async def delete_issue(
    issue_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: IssueService = Depends(_issue_svc),
):
    with service_errors():
        await svc.delete_issue(issue_id, identity.user_id)
