"""Project and membership API routes.

Learn: Routes translate HTTP to ProjectService calls. The service owns
the permission checks and the side effects (activity, notifications,
live events); a route never pushes anything itself.

- /projects                         CRUD
- /projects/{id}/statistics         dashboard counters
- /projects/{id}/members[/{mid}]    membership management (owner only)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.realtime.dispatcher import EventDispatcher, get_dispatcher
from issuetracker.schemas.project import (
    MemberAdd,
    MemberRead,
    MemberRoleChange,
    ProjectCreate,
    ProjectDetail,
    ProjectRead,
    ProjectStatistics,
    ProjectUpdate,
)
from issuetracker.services.project_service import ProjectService

router = APIRouter()


def _project_svc(
    db: AsyncSession = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> ProjectService:
    return ProjectService(db, dispatcher)


# ═══════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════


@router.post("/projects", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    return await svc.create_project(identity.user_id, body.name, body.description)


@router.get("/projects", response_model=list[ProjectRead])
async def list_projects(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    return await svc.list_projects(identity.user_id)


@router.get("/projects/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        return await svc.get_project(project_id, identity.user_id)


@router.patch("/projects/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Partial update — only fields present in the body are applied."""
    fields = body.model_dump(exclude_unset=True)
    with service_errors():
        return await svc.update_project(project_id, identity.user_id, **fields)


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        await svc.delete_project(project_id, identity.user_id)


@router.get("/projects/{project_id}/statistics", response_model=ProjectStatistics)
async def project_statistics(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        return await svc.statistics(project_id, identity.user_id)


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/members", response_model=list[MemberRead])
async def list_members(
    project_id: uuid.UUID,
    q: Optional[str] = Query(None),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        return await svc.list_members(project_id, identity.user_id, q=q)


@router.post("/projects/{project_id}/members", response_model=MemberRead, status_code=201)
async def add_member(
    project_id: uuid.UUID,
    body: MemberAdd,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        return await svc.add_member(project_id, identity.user_id, body.user_id, body.role)


@router.patch("/projects/{project_id}/members/{member_id}", response_model=MemberRead)
async def change_member_role(
    project_id: uuid.UUID,
    member_id: uuid.UUID,
    body: MemberRoleChange,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        return await svc.change_member_role(project_id, identity.user_id, member_id, body.role)


@router.delete("/projects/{project_id}/members/{member_id}", status_code=204)
async def remove_member(
    project_id: uuid.UUID,
    member_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    with service_errors():
        await svc.remove_member(project_id, identity.user_id, member_id)
