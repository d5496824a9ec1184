"""Admin API — account approval queue.

Every route here runs behind require_admin (ACTIVE + ADMIN).
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import require_admin
from issuetracker.db.engine import get_db
from issuetracker.schemas.user import AdminUserRead, ApproveRequest, RejectRequest
from issuetracker.services.user_service import UserService

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _user_svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("/users", response_model=list[AdminUserRead])
async def list_users(
    status: Optional[str] = Query(None, pattern=r"^(PENDING|ACTIVE|REJECTED)$"),
    svc: UserService = Depends(_user_svc),
):
    return await svc.list_users(status=status)


@router.post("/users/{user_id}/approve", response_model=AdminUserRead)
async def approve_user(
    user_id: uuid.UUID,
    body: Optional[ApproveRequest] = None,
    svc: UserService = Depends(_user_svc),
):
    with service_errors():
        return await svc.approve(user_id, role=body.role if body else "MEMBER")


@router.post("/users/{user_id}/reject", response_model=AdminUserRead)
async def reject_user(
    user_id: uuid.UUID,
    body: Optional[RejectRequest] = None,
    svc: UserService = Depends(_user_svc),
):
    with service_errors():
        return await svc.reject(user_id, reason=body.reason if body else None)
