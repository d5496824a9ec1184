"""Test fixtures — a fresh in-memory database and app per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite in-memory engine (aiosqlite). StaticPool
   keeps the single connection alive so every session sees the same data.
2. Tables come straight from Base.metadata; no migrations needed.
3. Each test builds its own app with create_app(), so the connection
   registry and dispatcher on app.state start empty.
4. get_db is overridden to hand the routes the test's session, so data
   seeded in a test is visible to the API and vice versa.

Auth is real: tests sign JWTs for seeded users and send Bearer headers.
"""

import json
import os

os.environ.setdefault("ISSUETRACKER_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ISSUETRACKER_ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from issuetracker.auth.jwt import create_access_token
from issuetracker.auth.password import hash_password
from issuetracker.db.engine import get_db
from issuetracker.db.models import Base, Issue, Project, ProjectMember, User
from issuetracker.main import create_app
from issuetracker.realtime.registry import LiveSink

PASSWORD = "password123"
# One bcrypt hash for every seeded user keeps the suite fast.
PASSWORD_HASH = hash_password(PASSWORD)


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(engine):
    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture()
def app():
    return create_app()


@pytest.fixture()
def registry(app):
    return app.state.registry


@pytest.fixture()
def dispatcher(app):
    return app.state.dispatcher


@pytest_asyncio.fixture()
async def client(app, db_session):
    """HTTP client against a fresh app, sharing the test's DB session."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Seed helpers ────────────────────────────────────────


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


def read_events(sink: LiveSink) -> list[dict]:
    """Drain every frame waiting in a sink and decode the JSON bodies."""
    events = []
    while sink.pending:
        frame = sink._queue.get_nowait()
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        events.append(json.loads(frame[len("data: "):]))
    return events


@pytest_asyncio.fixture()
async def make_user(db_session):
    async def _make(username: str, status: str = "ACTIVE", role: str = "MEMBER", **extra) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            name=username.title(),
            password_hash=PASSWORD_HASH,
            status=status,
            role=role,
            **extra,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture()
async def make_project(db_session):
    async def _make(owner: User, name: str = "Apollo", members: dict | None = None) -> Project:
        """members: {user: role}"""
        project = Project(name=name, owner_id=owner.id)
        db_session.add(project)
        await db_session.flush()
        for user, role in (members or {}).items():
            db_session.add(ProjectMember(project_id=project.id, user_id=user.id, role=role))
        await db_session.commit()
        return project

    return _make


@pytest_asyncio.fixture()
async def make_issue(db_session):
    async def _make(project: Project, author: User, assignee: User | None = None, **fields) -> Issue:
        issue = Issue(
            project_id=project.id,
            title=fields.pop("title", "Login page is blank"),
            author_id=author.id,
            assignee_id=assignee.id if assignee else None,
            **fields,
        )
        db_session.add(issue)
        await db_session.commit()
        return issue

    return _make


@pytest_asyncio.fixture()
async def alice(make_user):
    return await make_user("alice", role="ADMIN")


@pytest_asyncio.fixture()
async def bob(make_user):
    return await make_user("bob")


@pytest_asyncio.fixture()
async def carol(make_user):
    return await make_user("carol")
