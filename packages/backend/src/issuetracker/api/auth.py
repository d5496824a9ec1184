"""Auth API — registration, login, current user.

Learn: Routes for account access:
- POST /auth/register → create an account (first one becomes admin)
- POST /auth/login → email/password → JWT access token
- GET /auth/me → current user info

Register and login are open; /me needs a Bearer token.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.api.errors import service_errors
from issuetracker.auth.dependencies import CurrentIdentity, get_current_user
from issuetracker.db.engine import get_db
from issuetracker.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserRead
from issuetracker.services.user_service import UserService

router = APIRouter(prefix="/auth")


def _user_svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, svc: UserService = Depends(_user_svc)):
    """Create an account. Later accounts wait for admin approval."""
    with service_errors():
        user, token = await svc.register(
            email=body.email.strip().lower(),
            username=body.username.strip(),
            password=body.password,
            name=body.name,
        )
    if token:
        message = "Admin account created successfully"
    else:
        message = "Registration successful. Your account is pending admin approval."
    return AuthResponse(message=message, user=UserRead.model_validate(user), token=token)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: UserService = Depends(_user_svc)):
    with service_errors():
        user, token = await svc.login(body.email.strip().lower(), body.password)
    return AuthResponse(message="Login successful", user=UserRead.model_validate(user), token=token)


@router.get("/me", response_model=UserRead)
async def me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_user_svc),
):
    user = await svc.get_user(identity.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
