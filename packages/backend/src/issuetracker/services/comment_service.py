"""Comment service — comments on issues.

Learn: A new comment notifies the issue's author and assignee (not the
commenter) and broadcasts `issue_commented` to the rest of the project.
Edits are quiet: no activity, no push.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Comment, Issue
from issuetracker.events.store import ActivityLog
from issuetracker.events.types import (
    COMMENT_CREATED,
    COMMENT_DELETED,
    NOTIFY_ISSUE_COMMENTED,
)
from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.emitter import RealtimeEmitter
from issuetracker.realtime.events import EventType, LiveEvent
from issuetracker.schemas.comment import CommentRead
from issuetracker.services.access import load_project, require_project_role
from issuetracker.services.errors import NotFoundError, PermissionDeniedError


class CommentService:
    def __init__(self, db: AsyncSession, dispatcher: EventDispatcher):
        self.db = db
        self.activity = ActivityLog(db)
        self.realtime = RealtimeEmitter(db, dispatcher)

    async def list_comments(self, issue_id: uuid.UUID, user_id: uuid.UUID) -> list[CommentRead]:
        issue = await self.db.get(Issue, issue_id)
        if not issue:
            raise NotFoundError("Issue not found")
        project = await load_project(self.db, issue.project_id)
        await require_project_role(self.db, project, user_id)

        result = await self.db.execute(
            select(Comment).where(Comment.issue_id == issue_id).order_by(Comment.created_at)
        )
        return [CommentRead.model_validate(c) for c in result.scalars().all()]

    async def create_comment(
        self, issue_id: uuid.UUID, actor_id: uuid.UUID, content: str
    ) -> CommentRead:
        issue = await self.db.get(Issue, issue_id)
        if not issue:
            raise NotFoundError("Issue not found")
        project = await load_project(self.db, issue.project_id)
        await require_project_role(self.db, project, actor_id)

        project_id = project.id
        issue_title = issue.title
        targets = {issue.author_id}
        if issue.assignee_id:
            targets.add(issue.assignee_id)

        comment = Comment(issue_id=issue_id, author_id=actor_id, content=content.strip())
        self.db.add(comment)
        await self.db.commit()
        snapshot = CommentRead.model_validate(comment)

        await self.activity.record(
            COMMENT_CREATED, actor_id, project_id=project_id, issue_id=issue_id,
            metadata={"comment_id": str(snapshot.id)},
        )
        await self.realtime.notify_many(
            targets,
            actor_id,
            NOTIFY_ISSUE_COMMENTED,
            title=f"New comment on: {issue_title}",
            body=snapshot.content,
            link=f"/projects/{project_id}/issues/{issue_id}",
        )
        await self.realtime.broadcast_to_project(
            project_id,
            actor_id,
            LiveEvent(EventType.ISSUE_COMMENTED, {
                "project_id": str(project_id),
                "issue_id": str(issue_id),
                "comment": {
                    "id": str(snapshot.id),
                    "content": snapshot.content,
                    "author_id": str(actor_id),
                },
            }),
        )
        return snapshot

    async def _load_editable(self, comment_id: uuid.UUID, actor_id: uuid.UUID) -> tuple[Comment, uuid.UUID]:
        """Comment author or project owner only."""
        comment = await self.db.get(Comment, comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        issue = await self.db.get(Issue, comment.issue_id)
        project = await load_project(self.db, issue.project_id)
        if comment.author_id != actor_id and project.owner_id != actor_id:
            raise PermissionDeniedError("You do not have permission to modify this comment")
        return comment, project.id

    async def update_comment(
        self, comment_id: uuid.UUID, actor_id: uuid.UUID, content: str
    ) -> CommentRead:
        comment, _ = await self._load_editable(comment_id, actor_id)
        comment.content = content.strip()
        await self.db.commit()
        return CommentRead.model_validate(comment)

    async def delete_comment(self, comment_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        comment, project_id = await self._load_editable(comment_id, actor_id)
        issue_id = comment.issue_id

        await self.activity.record(
            COMMENT_DELETED, actor_id, project_id=project_id, issue_id=issue_id,
            metadata={"comment_id": str(comment_id)},
        )
        comment = await self.db.get(Comment, comment_id)
        if comment:
            await self.db.delete(comment)
            await self.db.commit()
