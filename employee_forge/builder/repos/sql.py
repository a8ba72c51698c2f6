"""SQLAlchemy async repository implementations.

Usage
-----

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (tests and local development).
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. A checkpoint save reads the thread's latest version and inserts the
new row in the same transaction; the unique ``(thread_id, version)``
constraint turns a lost race into ``CheckpointConflictError``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..errors import CheckpointConflictError, CheckpointWriteError
from ..schemas.domain import (
    ApprovalRequest,
    ApprovalStatus,
    BuilderEvent,
    BuilderEventType,
    CapabilityRef,
    RiskLevel,
)
from ..schemas.state import ThreadCheckpoint
from .interfaces import ApprovalRepository, CheckpointRepository, EventRepository
from .models import ApprovalRow, Base, CheckpointRow, EventRow

logger = logging.getLogger(__name__)


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Postgres URLs are rewritten to use the ``asyncpg`` driver, e.g.
    ``postgresql://`` becomes ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _checkpoint_from_row(row: CheckpointRow) -> ThreadCheckpoint:
    return ThreadCheckpoint(
        id=row.id,
        thread_id=row.thread_id,
        version=row.version,
        node=row.node,
        state=dict(row.state or {}),
        created_at=row.created_at,
    )


@dataclass(frozen=True)
class SqlCheckpointRepository(CheckpointRepository):
    """SQL implementation of ``CheckpointRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def save(self, checkpoint: ThreadCheckpoint, *, expected_version: Optional[int]) -> None:
        """
        Insert ``checkpoint`` if the thread is still at ``expected_version``.

        Raises:
            CheckpointConflictError: The thread has a different latest version.
            CheckpointWriteError: The database rejected or failed the write.
        """
        try:
            async with self.session_factory() as s:
                actual = await s.scalar(
                    select(func.max(CheckpointRow.version)).where(CheckpointRow.thread_id == checkpoint.thread_id)
                )
                if actual != expected_version or checkpoint.version != (expected_version or 0) + 1:
                    raise CheckpointConflictError(checkpoint.thread_id, expected_version, actual)
                s.add(
                    CheckpointRow(
                        id=checkpoint.id,
                        thread_id=checkpoint.thread_id,
                        version=checkpoint.version,
                        node=checkpoint.node,
                        state=checkpoint.state,
                        created_at=checkpoint.created_at,
                    )
                )
                await s.commit()
        except IntegrityError as e:
            raise CheckpointConflictError(checkpoint.thread_id, expected_version, None) from e
        except SQLAlchemyError as e:
            logger.error("Checkpoint write failed for thread %s: %s", checkpoint.thread_id, e)
            raise CheckpointWriteError(checkpoint.thread_id, str(e)) from e

    async def latest(self, thread_id: str) -> Optional[ThreadCheckpoint]:
        async with self.session_factory() as s:
            stmt = (
                select(CheckpointRow)
                .where(CheckpointRow.thread_id == thread_id)
                .order_by(CheckpointRow.version.desc())
                .limit(1)
            )
            row = (await s.execute(stmt)).scalars().first()
            return _checkpoint_from_row(row) if row is not None else None

    async def history(self, thread_id: str) -> list[ThreadCheckpoint]:
        async with self.session_factory() as s:
            stmt = select(CheckpointRow).where(CheckpointRow.thread_id == thread_id).order_by(CheckpointRow.version)
            rows = (await s.execute(stmt)).scalars().all()
            return [_checkpoint_from_row(r) for r in rows]


@dataclass(frozen=True)
class SqlEventRepository(EventRepository):
    """SQL implementation of ``EventRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def publish(self, event: BuilderEvent) -> None:
        async with self.session_factory() as s:
            s.add(
                EventRow(
                    id=event.id,
                    thread_id=event.thread_id,
                    type=event.type.value,
                    branch_id=event.branch_id,
                    org_id=event.org_id,
                    created_at=event.created_at,
                    payload=event.payload,
                )
            )
            await s.commit()

    async def list(self, thread_id: str, limit: int = 100) -> list[BuilderEvent]:
        async with self.session_factory() as s:
            stmt = (
                select(EventRow)
                .where(EventRow.thread_id == thread_id)
                .order_by(EventRow.created_at)
                .limit(limit)
            )
            rows = (await s.execute(stmt)).scalars().all()
            return [
                BuilderEvent(
                    id=r.id,
                    thread_id=r.thread_id,
                    type=BuilderEventType(r.type),
                    branch_id=r.branch_id,
                    org_id=r.org_id,
                    created_at=r.created_at,
                    payload=dict(r.payload or {}),
                )
                for r in rows
            ]


def _approval_from_row(row: ApprovalRow) -> ApprovalRequest:
    return ApprovalRequest(
        id=row.id,
        agent_name=row.agent_name,
        capability=CapabilityRef(provider_id=row.provider_id, id=row.capability_id),
        risk=RiskLevel(row.risk),
        params=dict(row.params or {}),
        reason=row.reason,
        status=ApprovalStatus(row.status),
        requested_at=row.requested_at,
        decided_at=row.decided_at,
        decided_by=row.decided_by,
    )


@dataclass(frozen=True)
class SqlApprovalRepository(ApprovalRepository):
    """SQL implementation of ``ApprovalRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, approval: ApprovalRequest) -> None:
        async with self.session_factory() as s:
            s.add(
                ApprovalRow(
                    id=approval.id,
                    agent_name=approval.agent_name,
                    provider_id=approval.capability.provider_id,
                    capability_id=approval.capability.id,
                    risk=approval.risk.value,
                    params=approval.params,
                    reason=approval.reason,
                    status=approval.status.value,
                    requested_at=approval.requested_at,
                    decided_at=approval.decided_at,
                    decided_by=approval.decided_by,
                )
            )
            await s.commit()

    async def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        async with self.session_factory() as s:
            row = await s.get(ApprovalRow, approval_id)
            return _approval_from_row(row) if row is not None else None

    async def resolve(self, approval_id: str, *, status: ApprovalStatus, decided_by: Optional[str]) -> None:
        async with self.session_factory() as s:
            row = await s.get(ApprovalRow, approval_id)
            if row is None:
                return
            row.status = status.value
            row.decided_by = decided_by
            row.decided_at = datetime.now(timezone.utc)
            await s.commit()

    async def list(self, *, pending_only: bool = True) -> list[ApprovalRequest]:
        async with self.session_factory() as s:
            stmt = select(ApprovalRow).order_by(ApprovalRow.requested_at)
            if pending_only:
                stmt = stmt.where(ApprovalRow.status == ApprovalStatus.pending.value)
            rows = (await s.execute(stmt)).scalars().all()
            return [_approval_from_row(r) for r in rows]


@dataclass(frozen=True)
class SqlRepoBundle:
    checkpoints: SqlCheckpointRepository
    events: SqlEventRepository
    approvals: SqlApprovalRepository


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """Build a ``SqlRepoBundle`` from a session factory."""
    return SqlRepoBundle(
        checkpoints=SqlCheckpointRepository(session_factory=session_factory),
        events=SqlEventRepository(session_factory=session_factory),
        approvals=SqlApprovalRepository(session_factory=session_factory),
    )
