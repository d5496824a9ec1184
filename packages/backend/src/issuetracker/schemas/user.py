"""Pydantic schemas for accounts, login and admin approval."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$", max_length=255)
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserSummary(BaseModel):
    """Public view of a user, embedded in issues, members, activities."""
    id: uuid.UUID
    username: str
    email: str
    name: Optional[str]

    model_config = {"from_attributes": True}


class UserRead(UserSummary):
    status: str
    role: str
    created_at: datetime


class AuthResponse(BaseModel):
    """Register/login response. `token` is absent for pending registrations."""
    message: str
    user: UserRead
    token: Optional[str] = None


class ApproveRequest(BaseModel):
    role: str = Field(default="MEMBER", pattern=r"^(ADMIN|MEMBER)$")


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class AdminUserRead(UserRead):
    rejection_reason: Optional[str] = None
    updated_at: datetime
