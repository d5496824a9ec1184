"""Project access checks shared by every project-scoped service.

Learn: A user's standing in a project is one of OWNER, MEMBER, VIEWER
or nothing. The owner is stored on the project row, never as a member.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Project, ProjectMember
from issuetracker.services.errors import NotFoundError, PermissionDeniedError

OWNER = "OWNER"
WRITE_ROLES = {"OWNER", "MEMBER"}


async def project_role(
    db: AsyncSession, project: Project, user_id: uuid.UUID
) -> Optional[str]:
    if project.owner_id == user_id:
        return OWNER
    return await db.scalar(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id == user_id,
        )
    )


async def load_project(db: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def require_project_role(
    db: AsyncSession,
    project: Project,
    user_id: uuid.UUID,
    allowed: Optional[set[str]] = None,
) -> str:
    """Return the caller's role, or raise if they lack one of `allowed`.

    allowed=None means any standing in the project is enough.
    """
    role = await project_role(db, project, user_id)
    if role is None:
        raise PermissionDeniedError("You do not have permission to access this project")
    if allowed is not None and role not in allowed:
        raise PermissionDeniedError("Your project role does not allow this action")
    return role


async def require_owner(
    db: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Project:
    """Owner-only actions report a missing project and a foreign one the same way."""
    project = await db.get(Project, project_id)
    if not project or project.owner_id != user_id:
        raise NotFoundError("Project not found or you do not have permission")
    return project
