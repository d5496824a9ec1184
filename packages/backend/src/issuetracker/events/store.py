"""Activity log — append-only audit trail of domain mutations.

Learn: Every change worth showing in a project's history becomes an
immutable row: {type: "ISSUE_STATUS_CHANGED", metadata: {from, to}}.
Rows are never updated.

Writing the log is a secondary effect. record() commits on its own after
the caller's primary commit, and a failure is logged rather than raised
so the user's mutation still succeeds.
"""

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Activity

logger = structlog.get_logger()


class ActivityLog:
    """Append-only activity store backed by the activities table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        type: str,
        user_id: uuid.UUID,
        project_id: Optional[uuid.UUID] = None,
        issue_id: Optional[uuid.UUID] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[Activity]:
        """Append one activity. Returns None (and logs) if the write fails."""
        try:
            activity = Activity(
                type=type,
                user_id=user_id,
                project_id=project_id,
                issue_id=issue_id,
                meta=metadata,
            )
            self.db.add(activity)
            await self.db.commit()
            return activity
        except Exception as e:
            logger.error(
                "activity.create_failed",
                activity_type=type,
                project_id=str(project_id) if project_id else None,
                issue_id=str(issue_id) if issue_id else None,
                error=repr(e),
            )
            await self._rollback()
            return None

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.error("db.rollback_failed", error=repr(e))

    async def for_project(
        self, project_id: uuid.UUID, limit: int = 50
    ) -> list[Activity]:
        """Newest-first activity for a project."""
        result = await self.db.execute(
            select(Activity)
            .where(Activity.project_id == project_id)
            .order_by(Activity.created_at.desc(), Activity.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def for_issue(self, issue_id: uuid.UUID, limit: int = 100) -> list[Activity]:
        """Newest-first activity for an issue."""
        result = await self.db.execute(
            select(Activity)
            .where(Activity.issue_id == issue_id)
            .order_by(Activity.created_at.desc(), Activity.id)
            .limit(limit)
        )
        return list(result.scalars().all())
