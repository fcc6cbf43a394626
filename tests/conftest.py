"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_answer_generator
from app.core.db import Base, get_db
from app.core.security import create_access_token
from app.domains.identity.entities import Actor, Role
from app.domains.projects.entities import Project, Question, Section, Visibility
from app.domains.projects.generation import AnswerGenerator
from app.main import app

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def build_project(section_sizes, owner_id="owner-1", visibility=Visibility.TEAM, team_id="team-1"):
    """Project with len(section_sizes) sections holding the given number of questions each."""
    sections = [
        Section.create_section(
            name=f"Section {s + 1}",
            questions=[Question.create_question(f"Question {s + 1}.{q + 1}") for q in range(size)]
        )
        for s, size in enumerate(section_sizes)
    ]
    return Project.create_project(
        owner_id=owner_id, name="Acme RFP", sections=sections,
        visibility=visibility, team_id=team_id
    )


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def owner() -> Actor:
    return Actor(uid="owner-1", email="owner@example.com", display_name="Olga Owner", role=Role.ADMIN, team_id="team-1")


@pytest.fixture
def admin() -> Actor:
    return Actor(uid="admin-1", email="admin@example.com", display_name="Ada Admin", role=Role.ADMIN, team_id="team-1")


@pytest.fixture
def alice() -> Actor:
    return Actor(uid="alice", email="alice@example.com", display_name="Alice", role=Role.EDITOR, team_id="team-1")


@pytest.fixture
def bob() -> Actor:
    return Actor(uid="bob", email="bob@example.com", display_name="Bob", role=Role.EDITOR, team_id="team-1")


@pytest.fixture
def viewer() -> Actor:
    return Actor(uid="vic", email="vic@example.com", display_name="Vic", role=Role.VIEWER, team_id="team-1")


@pytest.fixture
def project_factory():
    return build_project


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client against the app with an in-memory database."""
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_answer_generator] = lambda: AnswerGenerator(base_url="")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides = {}


def auth_headers(uid: str, role: str = "editor", team_id: str = "team-1", email: str = None) -> dict:
    token = create_access_token(
        {"sub": uid, "email": email or f"{uid}@example.com", "name": uid.title(), "role": role, "team_id": team_id},
        expires_delta=timedelta(hours=1)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers
