"""Membership resolver — who should hear about a project's events.

Learn: The audience is recomputed from the database on every call. Caching
it would let a just-removed member keep receiving events (or a just-added
one miss them), so the cost of one small query per emission is accepted.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Project, ProjectMember

logger = structlog.get_logger()


class MembershipResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def audience_for_project(self, project_id: uuid.UUID) -> set[uuid.UUID]:
        """Owner ∪ members of the project; empty if the project is gone."""
        owner_id = await self.db.scalar(
            select(Project.owner_id).where(Project.id == project_id)
        )
        if owner_id is None:
            logger.info("realtime.audience_project_missing", project_id=str(project_id))
            return set()

        result = await self.db.execute(
            select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
        )
        audience = set(result.scalars().all())
        audience.add(owner_id)
        return audience
