from __future__ import annotations

import pytest
import pytest_asyncio

from employee_forge.builder.repos import InMemoryApprovalRepository, InMemoryCheckpointRepository, InMemoryEventRepository
from employee_forge.builder.repos.sql import build_sql_repos, create_all, create_engine, create_sessionmaker


@pytest_asyncio.fixture
async def sql_repos(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'builder.db'}")
    await create_all(engine)
    try:
        yield build_sql_repos(session_factory=create_sessionmaker(engine))
    finally:
        await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def backend(request) -> str:
    return request.param


@pytest_asyncio.fixture
async def checkpoint_repo(backend, tmp_path):
    if backend == "memory":
        yield InMemoryCheckpointRepository()
        return
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkpoints.db'}")
    await create_all(engine)
    try:
        yield build_sql_repos(session_factory=create_sessionmaker(engine)).checkpoints
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def event_repo(backend, sql_repos):
    yield InMemoryEventRepository() if backend == "memory" else sql_repos.events


@pytest_asyncio.fixture
async def approval_repo(backend, sql_repos):
    yield InMemoryApprovalRepository() if backend == "memory" else sql_repos.approvals
