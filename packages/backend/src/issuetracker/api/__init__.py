"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. Handlers that need the caller's id declare
get_current_user again; FastAPI resolves it once per request. Health,
auth and the realtime stream are open at this level: /auth/me and the
stream authenticate themselves.
"""

from fastapi import APIRouter, Depends

from issuetracker.api.activities import router as activities_router
from issuetracker.api.admin import router as admin_router
from issuetracker.api.auth import router as auth_router
from issuetracker.api.comments import router as comments_router
from issuetracker.api.health import router as health_router
from issuetracker.api.issues import router as issues_router
from issuetracker.api.labels import router as labels_router
from issuetracker.api.notifications import router as notifications_router
from issuetracker.api.projects import router as projects_router
from issuetracker.api.users import router as users_router
from issuetracker.auth.dependencies import get_current_user
from issuetracker.realtime.stream import router as realtime_router

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(realtime_router, tags=["realtime"])

# Protected routes — require a valid JWT
api_router.include_router(admin_router, tags=["admin"], dependencies=_auth)
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(projects_router, tags=["projects", "members"], dependencies=_auth)
api_router.include_router(issues_router, tags=["issues"], dependencies=_auth)
api_router.include_router(comments_router, tags=["comments"], dependencies=_auth)
api_router.include_router(labels_router, tags=["labels"], dependencies=_auth)
api_router.include_router(notifications_router, tags=["notifications"], dependencies=_auth)
api_router.include_router(activities_router, tags=["activities"], dependencies=_auth)
