"""Notification schemas.

NotificationRead is also the payload of the live `notification` event, so
the bell and the stream agree on shape.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    title: str
    body: Optional[str]
    link: Optional[str]
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
