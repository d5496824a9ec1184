"""Pydantic schemas for projects and project membership."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from issuetracker.schemas.issue import IssueRead
from issuetracker.schemas.user import UserSummary


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    """Partial update — only fields present in the request are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class ProjectRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectDetail(ProjectRead):
    """A single project as seen by the caller, with their OWNER/MEMBER/VIEWER role."""
    user_role: str


class ProjectStatistics(BaseModel):
    project_id: uuid.UUID
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    my_issues: int
    recent_issues: list[IssueRead]


# ─── Members ─────────────────────────────────────────────

class MemberAdd(BaseModel):
    user_id: uuid.UUID
    role: str = Field(default="VIEWER", pattern=r"^(MEMBER|VIEWER)$")


class MemberRoleChange(BaseModel):
    role: str = Field(..., pattern=r"^(MEMBER|VIEWER)$")


class MemberRead(BaseModel):
    """A membership row. The owner appears with id=None and role OWNER."""
    id: Optional[uuid.UUID]
    project_id: uuid.UUID
    user_id: uuid.UUID
    role: str
    created_at: datetime
    user: UserSummary
