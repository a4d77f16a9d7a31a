"""
Pytest configuration and fixtures for Taskboard tests.

Each test gets its own SQLite database file (aiosqlite), so sessions in
different requests see each other's commits the way they would against
PostgreSQL. Firebase verification is replaced by a fixed token table.
"""

from datetime import date, timedelta
from typing import Any

import pytest
import pytest_asyncio
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from taskboard.auth import bearer_scheme, get_token_claims
from taskboard.database import build_engine, get_session
from taskboard.exceptions import UnauthenticatedError
from taskboard.main import app
from taskboard.models import Task, TaskStatus, User


# Bearer token -> decoded Firebase claims
TEST_ACCOUNTS: dict[str, dict[str, Any]] = {
    "manager-token": {"uid": "uid-manager", "email": "manager@taskapp.com", "name": "John Manager", "role": "manager"},
    "user-token": {"uid": "uid-alice", "email": "alice@taskapp.com", "name": "Alice Developer", "role": "user"},
    "other-token": {"uid": "uid-bob", "email": "bob@taskapp.com", "name": "Bob Developer", "role": "user"},
}


async def fake_token_claims(
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if bearer is None or bearer.credentials not in TEST_ACCOUNTS:
        raise UnauthenticatedError("Invalid authentication token")
    return TEST_ACCOUNTS[bearer.credentials]


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskboard_test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        yield session


async def _create_user(session_maker, account: dict[str, Any]) -> User:
    async with session_maker() as session:
        user = User(
            firebase_uid=account["uid"],
            email=account["email"],
            name=account["name"],
            role=account["role"],
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def manager(session_maker) -> User:
    return await _create_user(session_maker, TEST_ACCOUNTS["manager-token"])


@pytest_asyncio.fixture
async def user(session_maker) -> User:
    return await _create_user(session_maker, TEST_ACCOUNTS["user-token"])


@pytest_asyncio.fixture
async def other_user(session_maker) -> User:
    return await _create_user(session_maker, TEST_ACCOUNTS["other-token"])


@pytest.fixture
def make_task(session_maker, manager):
    """
    Factory inserting a task directly; returns its id.

    Ids rather than instances, because the engine rolls sessions back on
    rejected writes and expired instances cannot lazy-load under asyncio.
    """
    counter = {"n": 0}

    async def _make_task(
        status: TaskStatus = TaskStatus.PENDING,
        assigned_to: int | None = None,
        title: str | None = None,
    ) -> int:
        counter["n"] += 1
        async with session_maker() as session:
            task = Task(
                title=title or f"Task {counter['n']}",
                description="Created by a test",
                status=status.value,
                due_date=date.today() + timedelta(days=7),
                assigned_to=assigned_to,
                created_by=manager.id,
            )
            session.add(task)
            await session.commit()
            await session.refresh(task)
            return task.id

    return _make_task


@pytest.fixture
def set_status(session_maker):
    async def _set_status(task_id: int, status: TaskStatus) -> None:
        async with session_maker() as session:
            task = await session.get(Task, task_id)
            task.status = status.value
            await session.commit()

    return _set_status


@pytest_asyncio.fixture(scope="function")
async def client(session_maker):
    """Create an async test client with test database and fake token verification."""

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_token_claims] = fake_token_claims

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
