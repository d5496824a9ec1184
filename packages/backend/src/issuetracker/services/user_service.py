"""User service — registration, login and admin approval.

Learn: Accounts are gated. The first account ever created bootstraps the
system as an ACTIVE ADMIN and gets a token straight away; every later
registration lands as PENDING and cannot log in until an admin approves it.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.auth.jwt import create_access_token
from issuetracker.auth.password import hash_password, verify_password
from issuetracker.db.models import User
from issuetracker.services.errors import (
    AccountStatusError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
)

logger = structlog.get_logger()


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Registration / login ───────────────────────────

    async def register(
        self,
        email: str,
        username: str,
        password: str,
        name: Optional[str] = None,
    ) -> tuple[User, Optional[str]]:
        """Create an account. Returns (user, token-or-None)."""
        existing = await self.db.scalar(
            select(User.id).where(or_(User.email == email, User.username == username))
        )
        if existing:
            raise ConflictError("User with this email or username already exists")

        is_first_user = (await self.db.scalar(select(func.count(User.id)))) == 0
        user = User(
            email=email,
            username=username,
            name=name,
            password_hash=hash_password(password),
            status="ACTIVE" if is_first_user else "PENDING",
            role="ADMIN" if is_first_user else "MEMBER",
        )
        self.db.add(user)
        await self.db.commit()
        logger.info("users.registered", user_id=str(user.id), bootstrap_admin=is_first_user)

        token = create_access_token(str(user.id)) if is_first_user else None
        return user, token

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.db.scalar(select(User).where(User.email == email))
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        if user.status == "PENDING":
            raise AccountStatusError("Account pending approval")
        if user.status == "REJECTED":
            raise AccountStatusError("Account rejected", reason=user.rejection_reason)

        return user, create_access_token(str(user.id))

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    # ─── Directory ──────────────────────────────────────

    async def search_active(self, q: Optional[str] = None, limit: int = 50) -> list[User]:
        """Active users, optionally filtered by username/email/name substring."""
        query = (
            select(User)
            .where(User.status == "ACTIVE")
            .order_by(User.username)
            .limit(limit)
        )
        if q:
            pattern = f"%{q.lower()}%"
            query = query.where(
                or_(
                    func.lower(User.username).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.name).like(pattern),
                )
            )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─── Admin ──────────────────────────────────────────

    async def list_users(self, status: Optional[str] = None) -> list[User]:
        query = select(User).order_by(User.created_at.desc())
        if status:
            query = query.where(User.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def approve(self, user_id: uuid.UUID, role: str = "MEMBER") -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        user.status = "ACTIVE"
        user.role = "ADMIN" if role == "ADMIN" else "MEMBER"
        user.rejection_reason = None
        await self.db.commit()
        logger.info("users.approved", user_id=str(user_id), role=user.role)
        return user

    async def reject(self, user_id: uuid.UUID, reason: Optional[str] = None) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        user.status = "REJECTED"
        user.rejection_reason = reason
        await self.db.commit()
        logger.info("users.rejected", user_id=str(user_id))
        return user
