"""Label catalogue routes. Labels are global, not per project."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.db.engine import get_db
from issuetracker.schemas.issue import LabelCreate, LabelRead, LabelUpdate
from issuetracker.services.label_service import LabelService

router = APIRouter(prefix="/labels")


def _label_svc(db: AsyncSession = Depends(get_db)) -> LabelService:
    return LabelService(db)


@router.get("", response_model=list[LabelRead])
async def list_labels(svc: LabelService = Depends(_label_svc)):
    return await svc.list_labels()


@router.post("", response_model=LabelRead, status_code=201)
async def create_label(body: LabelCreate, svc: LabelService = Depends(_label_svc)):
    with service_errors():
        return await svc.create_label(body.name, body.color)


@router.patch("/{label_id}", response_model=LabelRead)
async def update_label(
    label_id: uuid.UUID,
    body: LabelUpdate,
    svc: LabelService = Depends(_label_svc),
):
    with service_errors():
        return await svc.update_label(label_id, name=body.name, color=body.color)


@router.delete("/{label_id}", status_code=204)
async def delete_label(label_id: uuid.UUID, svc: LabelService = Depends(_label_svc)):
    with service_errors():
        await svc.delete_label(label_id)
