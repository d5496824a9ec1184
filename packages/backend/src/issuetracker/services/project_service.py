"""Project service — projects, membership and their side effects.

Learn: Every mutation follows the same shape:
1. Check standing (owner-only for anything that changes the project)
2. Apply the change and commit — this is the user's actual request
3. Record the activity row (best-effort, own commit)
4. Notify / push live events (best-effort, after the durable writes)

Steps 3 and 4 can fail without affecting step 2's result.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Comment, Issue, IssueLabel, Project, ProjectMember, User
from issuetracker.events.store import ActivityLog
from issuetracker.events.types import (
    NOTIFY_PROJECT_MEMBER_ADDED,
    NOTIFY_PROJECT_MEMBER_ROLE_CHANGED,
    PROJECT_MEMBER_ADDED,
    PROJECT_MEMBER_REMOVED,
    PROJECT_MEMBER_ROLE_CHANGED,
    PROJECT_UPDATED,
)
from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.emitter import RealtimeEmitter
from issuetracker.realtime.events import EventType, LiveEvent
from issuetracker.schemas.project import (
    MemberRead,
    ProjectDetail,
    ProjectRead,
    ProjectStatistics,
)
from issuetracker.schemas.user import UserSummary
from issuetracker.services.access import (
    OWNER,
    load_project,
    require_owner,
    require_project_role,
)
from issuetracker.services.errors import ConflictError, InvalidRequestError, NotFoundError
from issuetracker.services.issue_service import load_issue_reads

logger = structlog.get_logger()

_UNSET = object()


class ProjectService:
    """Business logic for projects and project membership."""

    def __init__(self, db: AsyncSession, dispatcher: EventDispatcher):
        self.db = db
        self.activity = ActivityLog(db)
        self.realtime = RealtimeEmitter(db, dispatcher)

    # ─── Projects ───────────────────────────────────────

    async def create_project(
        self, owner_id: uuid.UUID, name: str, description: Optional[str] = None
    ) -> ProjectRead:
        project = Project(
            name=name.strip(),
            description=(description or "").strip() or None,
            owner_id=owner_id,
        )
        self.db.add(project)
        await self.db.commit()
        return ProjectRead.model_validate(project)

    async def list_projects(self, user_id: uuid.UUID) -> list[ProjectRead]:
        """Projects the user owns or is a member of, newest first."""
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        result = await self.db.execute(
            select(Project)
            .where(or_(Project.owner_id == user_id, Project.id.in_(member_of)))
            .order_by(Project.created_at.desc())
        )
        return [ProjectRead.model_validate(p) for p in result.scalars().all()]

    async def get_project(self, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectDetail:
        project = await load_project(self.db, project_id)
        role = await require_project_role(self.db, project, user_id)
        return ProjectDetail(
            **ProjectRead.model_validate(project).model_dump(), user_role=role
        )

    async def update_project(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        name: Optional[str] = None,
        description=_UNSET,
    ) -> ProjectRead:
        """Owner-only partial update. Records a from/to diff as PROJECT_UPDATED."""
        project = await require_owner(self.db, project_id, actor_id)

        changes = {}
        if name is not None and name.strip() != project.name:
            changes["name"] = {"from": project.name, "to": name.strip()}
            project.name = name.strip()
        if description is not _UNSET:
            new_description = (description or "").strip() or None
            if new_description != project.description:
                changes["description"] = {"from": project.description, "to": new_description}
                project.description = new_description

        await self.db.commit()
        snapshot = ProjectRead.model_validate(project)

        if changes:
            await self.activity.record(
                PROJECT_UPDATED, actor_id, project_id=project_id, metadata=changes
            )
        return snapshot

    async def delete_project(self, project_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """Owner-only. Issues, comments and memberships go with the project."""
        await require_owner(self.db, project_id, actor_id)

        issue_ids = select(Issue.id).where(Issue.project_id == project_id)
        await self.db.execute(delete(Comment).where(Comment.issue_id.in_(issue_ids)))
        await self.db.execute(delete(IssueLabel).where(IssueLabel.issue_id.in_(issue_ids)))
        await self.db.execute(delete(Issue).where(Issue.project_id == project_id))
        await self.db.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
        await self.db.execute(delete(Project).where(Project.id == project_id))
        await self.db.commit()
        logger.info("projects.deleted", project_id=str(project_id))

    async def statistics(
        self, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> ProjectStatistics:
        project = await load_project(self.db, project_id)
        await require_project_role(self.db, project, user_id)

        by_status = dict(
            (await self.db.execute(
                select(Issue.status, func.count(Issue.id))
                .where(Issue.project_id == project_id)
                .group_by(Issue.status)
            )).all()
        )
        by_priority = dict(
            (await self.db.execute(
                select(Issue.priority, func.count(Issue.id))
                .where(Issue.project_id == project_id)
                .group_by(Issue.priority)
            )).all()
        )
        my_issues = await self.db.scalar(
            select(func.count(Issue.id)).where(
                Issue.project_id == project_id,
                Issue.assignee_id == user_id,
                Issue.status != "CLOSED",
            )
        )
        recent = await self.db.execute(
            select(Issue)
            .where(Issue.project_id == project_id)
            .order_by(Issue.created_at.desc())
            .limit(5)
        )

        return ProjectStatistics(
            project_id=project_id,
            total=sum(by_status.values()),
            by_status=by_status,
            by_priority=by_priority,
            my_issues=my_issues or 0,
            recent_issues=await load_issue_reads(self.db, list(recent.scalars().all())),
        )

    # ─── Members ────────────────────────────────────────

    async def list_members(
        self, project_id: uuid.UUID, user_id: uuid.UUID, q: Optional[str] = None
    ) -> list[MemberRead]:
        """Owner first (role OWNER), then members by role and join date."""
        project = await load_project(self.db, project_id)
        await require_project_role(self.db, project, user_id)

        result = await self.db.execute(
            select(ProjectMember, User)
            .join(User, User.id == ProjectMember.user_id)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.role, ProjectMember.created_at)
        )
        members = [
            MemberRead(
                id=m.id,
                project_id=project_id,
                user_id=m.user_id,
                role=m.role,
                created_at=m.created_at,
                user=UserSummary.model_validate(u),
            )
            for m, u in result.all()
        ]

        owner = await self.db.get(User, project.owner_id)
        if owner:
            members.insert(0, MemberRead(
                id=None,
                project_id=project_id,
                user_id=owner.id,
                role=OWNER,
                created_at=project.created_at,
                user=UserSummary.model_validate(owner),
            ))

        if q:
            needle = q.lower()
            members = [
                m for m in members
                if needle in m.user.username.lower()
                or needle in m.user.email.lower()
                or (m.user.name and needle in m.user.name.lower())
            ]
        return members

    async def add_member(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str = "VIEWER",
    ) -> MemberRead:
        project = await require_owner(self.db, project_id, actor_id)
        if user_id == project.owner_id:
            raise InvalidRequestError("Project owner cannot be added as a member")

        existing = await self.db.scalar(
            select(ProjectMember.id).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        if existing:
            raise ConflictError("User is already a member of this project")

        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
        self.db.add(member)
        await self.db.commit()
        snapshot = MemberRead(
            id=member.id,
            project_id=project_id,
            user_id=user_id,
            role=role,
            created_at=member.created_at,
            user=UserSummary.model_validate(user),
        )
        project_name = project.name

        await self.activity.record(
            PROJECT_MEMBER_ADDED,
            actor_id,
            project_id=project_id,
            metadata={
                "added_user_id": str(user_id),
                "added_user_name": snapshot.user.username,
                "role": role,
            },
        )
        await self.realtime.notify(
            user_id,
            NOTIFY_PROJECT_MEMBER_ADDED,
            title=f"You were added to a project: {project_name}",
            body=f"Role: {role}",
            link=f"/projects/{project_id}",
        )
        self.realtime.send_to_user(
            user_id,
            LiveEvent(
                EventType.PROJECT_MEMBER_ADDED,
                {"project_id": str(project_id), "role": role},
            ),
        )
        return snapshot

    async def change_member_role(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        member_id: uuid.UUID,
        role: str,
    ) -> MemberRead:
        """Owner-only. Side effects fire only if the role actually changed."""
        project = await require_owner(self.db, project_id, actor_id)
        member = await self.db.get(ProjectMember, member_id)
        if not member or member.project_id != project_id:
            raise NotFoundError("Member not found")

        old_role = member.role
        member.role = role
        await self.db.commit()

        user = await self.db.get(User, member.user_id)
        snapshot = MemberRead(
            id=member.id,
            project_id=project_id,
            user_id=member.user_id,
            role=role,
            created_at=member.created_at,
            user=UserSummary.model_validate(user),
        )
        project_name = project.name

        if old_role != role:
            await self.activity.record(
                PROJECT_MEMBER_ROLE_CHANGED,
                actor_id,
                project_id=project_id,
                metadata={
                    "member_user_id": str(snapshot.user_id),
                    "member_user_name": snapshot.user.username,
                    "from": old_role,
                    "to": role,
                },
            )
            await self.realtime.notify(
                snapshot.user_id,
                NOTIFY_PROJECT_MEMBER_ROLE_CHANGED,
                title=f"Your project role changed: {project_name}",
                body=f"Role: {old_role} → {role}",
                link=f"/projects/{project_id}",
            )
            self.realtime.send_to_user(
                snapshot.user_id,
                LiveEvent(
                    EventType.PROJECT_MEMBER_ROLE_CHANGED,
                    {"project_id": str(project_id), "from": old_role, "to": role},
                ),
            )
        return snapshot

    async def remove_member(
        self, project_id: uuid.UUID, actor_id: uuid.UUID, member_id: uuid.UUID
    ) -> None:
        await require_owner(self.db, project_id, actor_id)
        member = await self.db.get(ProjectMember, member_id)
        if not member or member.project_id != project_id:
            raise NotFoundError("Member not found")

        removed_user_id, removed_role = member.user_id, member.role
        removed_name = await self.db.scalar(
            select(User.username).where(User.id == removed_user_id)
        )
        await self.db.delete(member)
        await self.db.commit()

        await self.activity.record(
            PROJECT_MEMBER_REMOVED,
            actor_id,
            project_id=project_id,
            metadata={
                "removed_user_id": str(removed_user_id),
                "removed_user_name": removed_name,
                "role": removed_role,
            },
        )
        self.realtime.send_to_user(
            removed_user_id,
            LiveEvent(EventType.PROJECT_MEMBER_REMOVED, {"project_id": str(project_id)}),
        )
