"""Activity feed routes — project timeline and per-issue history."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.db.models import Issue
from issuetracker.events.store import ActivityLog
from issuetracker.schemas.activity import ActivityRead
from issuetracker.services.access import load_project, require_project_role

router = APIRouter()


@router.get("/projects/{project_id}/activities", response_model=list[ActivityRead])
async def project_activities(
    project_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with service_errors():
        project = await load_project(db, project_id)
        await require_project_role(db, project, identity.user_id)
    return await ActivityLog(db).for_project(project_id, limit=limit)


@router.get("/issues/{issue_id}/activities", response_model=list[ActivityRead])
async def issue_activities(
    issue_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    issue = await db.get(Issue, issue_id)
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    with service_errors():
        project = await load_project(db, issue.project_id)
        await require_project_role(db, project, identity.user_id)
    return await ActivityLog(db).for_issue(issue_id)
