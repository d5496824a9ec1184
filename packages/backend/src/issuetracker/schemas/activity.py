import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ActivityRead(BaseModel):
    id: uuid.UUID
    type: str
    user_id: uuid.UUID
    project_id: Optional[uuid.UUID]
    issue_id: Optional[uuid.UUID]
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="meta")
    created_at: datetime

    model_config = {"from_attributes": True}
