"""User directory — used when picking people to add to a project."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.db.engine import get_db
from issuetracker.schemas.user import UserSummary
from issuetracker.services.user_service import UserService

router = APIRouter()


@router.get("/users", response_model=list[UserSummary])
async def search_users(
    q: Optional[str] = Query(None, description="Username, email or name substring"),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).search_active(q=q, limit=limit)
