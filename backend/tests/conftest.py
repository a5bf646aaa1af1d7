from __future__ import annotations

import os
import uuid
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leaveflow.db import get_session
from leaveflow.main import app
from leaveflow.models import SQLModel
from leaveflow.models.enums import RoleName
from leaveflow.services.directory import DirectoryEmployee, InMemoryOrgGraph, set_org_graph
from leaveflow.services.notification import InMemoryNotificationSink, LoggingNotificationSink, set_notification_sink

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a fresh schema for every test.

    Defaults to an in-memory SQLite database shared over a single connection.
    Set TEST_DATABASE_URL to run against PostgreSQL instead.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def isolated_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Engine whose sessions get separate connections, for concurrent transactions.

    SQLite runs against a per-test database file instead of the shared
    in-memory connection.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'leaveflow.db'}")
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a session on the per-test database."""
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def org() -> Iterator[InMemoryOrgGraph]:
    """Install an empty in-memory directory for the test."""
    graph = InMemoryOrgGraph()
    set_org_graph(graph)
    yield graph
    set_org_graph(InMemoryOrgGraph())


@pytest.fixture
def sink() -> Iterator[InMemoryNotificationSink]:
    """Install a recording notification sink for the test."""
    recorder = InMemoryNotificationSink()
    set_notification_sink(recorder)
    yield recorder
    set_notification_sink(LoggingNotificationSink())


@pytest.fixture
def make_employee(org: InMemoryOrgGraph) -> Callable[..., DirectoryEmployee]:
    """Factory that seeds a directory employee and returns it."""

    def _make(
        first_name: str,
        last_name: str = "Doe",
        *,
        supervisor: DirectoryEmployee | None = None,
        roles: set[RoleName] | None = None,
        branch_id: uuid.UUID | None = None,
        department_id: uuid.UUID | None = None,
    ) -> DirectoryEmployee:
        employee = DirectoryEmployee(
            id=uuid.uuid4(),
            first_name=first_name,
            last_name=last_name,
            supervisor_id=supervisor.id if supervisor else None,
            branch_id=branch_id,
            department_id=department_id,
            roles=roles or {RoleName.EMPLOYEE},
        )
        org.seed(employee)
        return employee

    return _make


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
