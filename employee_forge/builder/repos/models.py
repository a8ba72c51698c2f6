"""SQLAlchemy ORM models for builder persistence.

Design
------

- Checkpoints are versioned per thread; ``(thread_id, version)`` is unique so
  that two writers racing for the same version cannot both succeed.
- Events form an append-only timeline.
- Approval requests back the capability risk gate.

JSON columns use ``JSONB`` on Postgres and plain ``JSON`` elsewhere. Table
names are prefixed with ``ef_``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class CheckpointRow(Base):
    """Row model for ``ef_thread_checkpoints``."""

    __tablename__ = "ef_thread_checkpoints"
    __table_args__ = (UniqueConstraint("thread_id", "version", name="uq_ef_checkpoint_thread_version"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    thread_id: Mapped[str] = mapped_column(String(64), index=True)
    version: Mapped[int] = mapped_column(Integer)
    node: Mapped[str] = mapped_column(String(32))
    state: Mapped[Dict[str, Any]] = mapped_column(JsonType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class EventRow(Base):
    """Row model for ``ef_builder_events``."""

    __tablename__ = "ef_builder_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    thread_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(64))
    branch_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    org_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    payload: Mapped[Dict[str, Any]] = mapped_column(JsonType, default=dict)


class ApprovalRow(Base):
    """Row model for ``ef_approval_requests``."""

    __tablename__ = "ef_approval_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_name: Mapped[str] = mapped_column(String(256))
    provider_id: Mapped[str] = mapped_column(String(128))
    capability_id: Mapped[str] = mapped_column(String(256))
    risk: Mapped[str] = mapped_column(String(16))
    params: Mapped[Dict[str, Any]] = mapped_column(JsonType, default=dict)
    reason: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), index=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
