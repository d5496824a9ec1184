"""Issue service — issue lifecycle plus its notifications and broadcasts.

Learn: update_issue() is the busiest call site of the real-time system.
After the update commits it:
1. diffs the old and new field values ({field: {from, to}})
2. records ISSUE_STATUS_CHANGED / ISSUE_ASSIGNEE_CHANGED / ISSUE_UPDATED
3. notifies the new assignee, and author+assignee on a status change
   (never the person who made the change)
4. broadcasts `issue_updated` with the issue and the diff to everyone
   in the project except the actor

The live event always goes out after the durable rows exist.
"""

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Comment, Issue, IssueLabel, Label, Project, ProjectMember
from issuetracker.events.store import ActivityLog
from issuetracker.events.types import (
    ISSUE_ASSIGNEE_CHANGED,
    ISSUE_CREATED,
    ISSUE_DELETED,
    ISSUE_LABEL_ADDED,
    ISSUE_LABEL_REMOVED,
    ISSUE_STATUS_CHANGED,
    ISSUE_UPDATED,
    NOTIFY_ISSUE_ASSIGNED,
    NOTIFY_ISSUE_STATUS_CHANGED,
)
from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.emitter import RealtimeEmitter
from issuetracker.realtime.events import EventType, LiveEvent
from issuetracker.schemas.issue import IssueRead, LabelRead
from issuetracker.services.access import (
    OWNER,
    WRITE_ROLES,
    load_project,
    require_project_role,
)
from issuetracker.services.errors import NotFoundError, PermissionDeniedError

logger = structlog.get_logger()

# Fields tracked in the update diff, in the order they are compared.
DIFF_FIELDS = ("title", "description", "status", "priority", "assignee_id")


async def load_issue_reads(db: AsyncSession, issues: list[Issue]) -> list[IssueRead]:
    """Build IssueRead models with labels and comment counts in two queries."""
    if not issues:
        return []
    ids = [i.id for i in issues]

    label_rows = await db.execute(
        select(IssueLabel.issue_id, Label)
        .join(Label, Label.id == IssueLabel.label_id)
        .where(IssueLabel.issue_id.in_(ids))
        .order_by(Label.name)
    )
    labels: dict[uuid.UUID, list[LabelRead]] = {}
    for issue_id, label in label_rows.all():
        labels.setdefault(issue_id, []).append(LabelRead.model_validate(label))

    count_rows = await db.execute(
        select(Comment.issue_id, func.count(Comment.id))
        .where(Comment.issue_id.in_(ids))
        .group_by(Comment.issue_id)
    )
    counts = dict(count_rows.all())

    return [
        IssueRead.model_validate(issue).model_copy(update={
            "labels": labels.get(issue.id, []),
            "comment_count": counts.get(issue.id, 0),
        })
        for issue in issues
    ]


def _jsonable(value: Any) -> Any:
    return str(value) if isinstance(value, uuid.UUID) else value


class IssueService:
    """Business logic for issue CRUD and its side effects."""

    def __init__(self, db: AsyncSession, dispatcher: EventDispatcher):
        self.db = db
        self.activity = ActivityLog(db)
        self.realtime = RealtimeEmitter(db, dispatcher)

    async def _read(self, issue: Issue) -> IssueRead:
        return (await load_issue_reads(self.db, [issue]))[0]

    async def _load_with_project(self, issue_id: uuid.UUID) -> tuple[Issue, Project]:
        issue = await self.db.get(Issue, issue_id)
        if not issue:
            raise NotFoundError("Issue not found")
        project = await load_project(self.db, issue.project_id)
        return issue, project

    # ─── Read ────────────────────────────────────────────

    async def get_issue(self, issue_id: uuid.UUID, user_id: uuid.UUID) -> IssueRead:
        issue, project = await self._load_with_project(issue_id)
        await require_project_role(self.db, project, user_id)
        return await self._read(issue)

    async def list_issues(
        self,
        user_id: uuid.UUID,
        project_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_id: Optional[uuid.UUID] = None,
        q: Optional[str] = None,
    ) -> list[IssueRead]:
        """List issues visible to the user, newest first.

        Learn: Without a project filter the query is scoped to every project
        the user owns or belongs to — never a global listing.
        """
        query = select(Issue).order_by(Issue.created_at.desc())

        if project_id:
            project = await load_project(self.db, project_id)
            await require_project_role(self.db, project, user_id)
            query = query.where(Issue.project_id == project_id)
        else:
            member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
            visible = select(Project.id).where(
                or_(Project.owner_id == user_id, Project.id.in_(member_of))
            )
            query = query.where(Issue.project_id.in_(visible))

        if status:
            query = query.where(Issue.status == status)
        if priority:
            query = query.where(Issue.priority == priority)
        if assignee_id:
            query = query.where(Issue.assignee_id == assignee_id)
        if q and q.strip():
            pattern = f"%{q.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Issue.title).like(pattern),
                    func.lower(Issue.description).like(pattern),
                )
            )

        result = await self.db.execute(query)
        return await load_issue_reads(self.db, list(result.scalars().all()))

    # ─── Create ──────────────────────────────────────────

    async def create_issue(
        self,
        actor_id: uuid.UUID,
        project_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
        status: str = "OPEN",
        priority: str = "MEDIUM",
        assignee_id: Optional[uuid.UUID] = None,
        label_ids: Optional[list[uuid.UUID]] = None,
    ) -> IssueRead:
        project = await load_project(self.db, project_id)
        await require_project_role(self.db, project, actor_id, allowed=WRITE_ROLES)
        project_name = project.name

        issue = Issue(
            project_id=project_id,
            title=title.strip(),
            description=(description or "").strip() or None,
            status=status,
            priority=priority,
            author_id=actor_id,
            assignee_id=assignee_id,
        )
        self.db.add(issue)
        await self.db.flush()

        labels = [
            LabelRead.model_validate(label)
            for label in await self._existing_labels(label_ids or [])
        ]
        for label in labels:
            self.db.add(IssueLabel(issue_id=issue.id, label_id=label.id))
        await self.db.commit()
        snapshot = await self._read(issue)

        for label in labels:
            await self.activity.record(
                ISSUE_LABEL_ADDED, actor_id, project_id=project_id, issue_id=snapshot.id,
                metadata={"label_id": str(label.id), "label_name": label.name},
            )
        await self.activity.record(
            ISSUE_CREATED, actor_id, project_id=project_id, issue_id=snapshot.id,
            metadata={"title": snapshot.title},
        )

        if snapshot.assignee_id and snapshot.assignee_id != actor_id:
            await self.realtime.notify(
                snapshot.assignee_id,
                NOTIFY_ISSUE_ASSIGNED,
                title=f"Issue assigned to you: {snapshot.title}",
                body=f"Project: {project_name}",
                link=self._link(snapshot),
            )

        await self.realtime.broadcast_to_project(
            project_id,
            actor_id,
            LiveEvent(EventType.ISSUE_CREATED, {
                "project_id": str(project_id),
                "issue": snapshot.model_dump(mode="json"),
            }),
        )
        return snapshot

    # ─── Update ──────────────────────────────────────────

    async def update_issue(
        self,
        issue_id: uuid.UUID,
        actor_id: uuid.UUID,
        fields: dict[str, Any],
    ) -> IssueRead:
        """Apply a partial update. `fields` holds only keys the caller sent.

        Returns the updated issue; `changes` of the diff travel in the
        broadcast, not in the return value.
        """
        issue, project = await self._load_with_project(issue_id)
        await require_project_role(self.db, project, actor_id, allowed=WRITE_ROLES)
        project_id, project_name = project.id, project.name

        changes: dict[str, dict[str, Any]] = {}
        for name in DIFF_FIELDS:
            if name not in fields:
                continue
            new = fields[name]
            if name == "title":
                if not new:
                    continue
                new = new.strip()
            elif name == "description":
                new = (new or "").strip() or None
            elif name in ("status", "priority") and not new:
                continue
            old = getattr(issue, name)
            if new != old:
                changes[name] = {"from": _jsonable(old), "to": _jsonable(new)}
                setattr(issue, name, new)

        added, removed = [], []
        if fields.get("label_ids") is not None:
            added, removed = await self._replace_labels(issue.id, fields["label_ids"])

        await self.db.commit()
        snapshot = await self._read(issue)

        await self._record_update_activity(snapshot, actor_id, changes, added, removed)
        await self._notify_update(snapshot, actor_id, changes, project_name)

        await self.realtime.broadcast_to_project(
            project_id,
            actor_id,
            LiveEvent(EventType.ISSUE_UPDATED, {
                "project_id": str(project_id),
                "issue_id": str(snapshot.id),
                "issue": snapshot.model_dump(mode="json"),
                "changes": changes,
            }),
        )
        return snapshot

    async def _record_update_activity(
        self,
        issue: IssueRead,
        actor_id: uuid.UUID,
        changes: dict[str, dict[str, Any]],
        added: list[LabelRead],
        removed: list[LabelRead],
    ) -> None:
        for label in added:
            await self.activity.record(
                ISSUE_LABEL_ADDED, actor_id, project_id=issue.project_id, issue_id=issue.id,
                metadata={"label_id": str(label.id), "label_name": label.name},
            )
        for label in removed:
            await self.activity.record(
                ISSUE_LABEL_REMOVED, actor_id, project_id=issue.project_id, issue_id=issue.id,
                metadata={"label_id": str(label.id), "label_name": label.name},
            )

        if "status" in changes:
            await self.activity.record(
                ISSUE_STATUS_CHANGED, actor_id, project_id=issue.project_id,
                issue_id=issue.id, metadata=changes["status"],
            )
        if "assignee_id" in changes:
            await self.activity.record(
                ISSUE_ASSIGNEE_CHANGED, actor_id, project_id=issue.project_id,
                issue_id=issue.id, metadata=changes["assignee_id"],
            )
        if changes and "status" not in changes and "assignee_id" not in changes:
            await self.activity.record(
                ISSUE_UPDATED, actor_id, project_id=issue.project_id,
                issue_id=issue.id, metadata=changes,
            )

    async def _notify_update(
        self,
        issue: IssueRead,
        actor_id: uuid.UUID,
        changes: dict[str, dict[str, Any]],
        project_name: str,
    ) -> None:
        if "assignee_id" in changes and issue.assignee_id and issue.assignee_id != actor_id:
            await self.realtime.notify(
                issue.assignee_id,
                NOTIFY_ISSUE_ASSIGNED,
                title=f"Issue assigned to you: {issue.title}",
                body=f"Project: {project_name}",
                link=self._link(issue),
            )

        if "status" in changes:
            targets = {issue.author_id}
            if issue.assignee_id:
                targets.add(issue.assignee_id)
            await self.realtime.notify_many(
                targets,
                actor_id,
                NOTIFY_ISSUE_STATUS_CHANGED,
                title=f"Issue status changed: {issue.title}",
                body=f"New status: {issue.status}",
                link=self._link(issue),
            )

    # ─── Delete ──────────────────────────────────────────

    async def delete_issue(self, issue_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """Owner-only. The ISSUE_DELETED activity is written first."""
        issue, project = await self._load_with_project(issue_id)
        role = await require_project_role(self.db, project, actor_id)
        if role != OWNER:
            raise PermissionDeniedError("Only the project owner can delete issues")

        project_id, title = project.id, issue.title
        await self.activity.record(
            ISSUE_DELETED, actor_id, project_id=project_id, issue_id=issue_id,
            metadata={"title": title},
        )

        await self.db.execute(delete(Comment).where(Comment.issue_id == issue_id))
        await self.db.execute(delete(IssueLabel).where(IssueLabel.issue_id == issue_id))
        await self.db.execute(delete(Issue).where(Issue.id == issue_id))
        await self.db.commit()
        logger.info("issues.deleted", issue_id=str(issue_id), project_id=str(project_id))

    # ─── Labels ──────────────────────────────────────────

    async def _existing_labels(self, label_ids: list[uuid.UUID]) -> list[Label]:
        if not label_ids:
            return []
        result = await self.db.execute(
            select(Label).where(Label.id.in_(set(label_ids))).order_by(Label.name)
        )
        return list(result.scalars().all())

    async def _replace_labels(
        self, issue_id: uuid.UUID, label_ids: list[uuid.UUID]
    ) -> tuple[list[LabelRead], list[LabelRead]]:
        """Set the issue's labels to exactly `label_ids`. Returns (added, removed)."""
        current = await self.db.execute(
            select(Label)
            .join(IssueLabel, IssueLabel.label_id == Label.id)
            .where(IssueLabel.issue_id == issue_id)
        )
        current_labels = {label.id: label for label in current.scalars().all()}
        wanted = {label.id: label for label in await self._existing_labels(label_ids)}

        added = [wanted[i] for i in wanted.keys() - current_labels.keys()]
        removed = [current_labels[i] for i in current_labels.keys() - wanted.keys()]

        if removed:
            await self.db.execute(
                delete(IssueLabel).where(
                    IssueLabel.issue_id == issue_id,
                    IssueLabel.label_id.in_([label.id for label in removed]),
                )
            )
        for label in added:
            self.db.add(IssueLabel(issue_id=issue_id, label_id=label.id))
        return (
            [LabelRead.model_validate(label) for label in added],
            [LabelRead.model_validate(label) for label in removed],
        )

    @staticmethod
    def _link(issue: IssueRead) -> str:
        return f"/projects/{issue.project_id}/issues/{issue.id}"
