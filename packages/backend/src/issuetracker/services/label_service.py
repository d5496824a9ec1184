"""Label service — the global label catalogue."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.models import Label
from issuetracker.services.errors import ConflictError, NotFoundError


class LabelService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_labels(self) -> list[Label]:
        result = await self.db.execute(select(Label).order_by(Label.name))
        return list(result.scalars().all())

    async def _ensure_unique(self, name: str, exclude: Optional[uuid.UUID] = None) -> None:
        query = select(Label.id).where(Label.name == name)
        if exclude:
            query = query.where(Label.id != exclude)
        if await self.db.scalar(query):
            raise ConflictError("Label with this name already exists")

    async def create_label(self, name: str, color: str = "#808080") -> Label:
        name = name.strip()
        await self._ensure_unique(name)
        label = Label(name=name, color=color)
        self.db.add(label)
        await self.db.commit()
        return label

    async def update_label(
        self,
        label_id: uuid.UUID,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Label:
        label = await self.db.get(Label, label_id)
        if not label:
            raise NotFoundError("Label not found")
        if name is not None:
            await self._ensure_unique(name.strip(), exclude=label_id)
            label.name = name.strip()
        if color is not None:
            label.color = color
        await self.db.commit()
        return label

    async def delete_label(self, label_id: uuid.UUID) -> None:
        label = await self.db.get(Label, label_id)
        if not label:
            raise NotFoundError("Label not found")
        await self.db.delete(label)
        await self.db.commit()
