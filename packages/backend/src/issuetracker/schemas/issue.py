"""Pydantic schemas for issues and labels.

- IssueCreate: what you POST to file an issue
- IssueUpdate: what you PATCH; unset fields are left alone, explicit null
  clears description/assignee
- IssueRead: what the API returns and what issue_* live events carry
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

STATUS_PATTERN = r"^(OPEN|IN_PROGRESS|RESOLVED|CLOSED)$"
PRIORITY_PATTERN = r"^(LOW|MEDIUM|HIGH|URGENT)$"


# ─── Labels ──────────────────────────────────────────────

class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#808080", max_length=20)


class LabelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    color: Optional[str] = Field(None, max_length=20)


class LabelRead(BaseModel):
    id: uuid.UUID
    name: str
    color: str

    model_config = {"from_attributes": True}


# ─── Issues ──────────────────────────────────────────────

class IssueCreate(BaseModel):
    project_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    status: str = Field(default="OPEN", pattern=STATUS_PATTERN)
    priority: str = Field(default="MEDIUM", pattern=PRIORITY_PATTERN)
    assignee_id: Optional[uuid.UUID] = None
    label_ids: list[uuid.UUID] = Field(default_factory=list)


class IssueUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    assignee_id: Optional[uuid.UUID] = None
    label_ids: Optional[list[uuid.UUID]] = None


class IssueRead(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: Optional[str]
    status: str
    priority: str
    author_id: uuid.UUID
    assignee_id: Optional[uuid.UUID]
    labels: list[LabelRead] = Field(default_factory=list)
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
