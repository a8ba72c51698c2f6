"""Repository interface contracts.

The engine depends on these Protocols instead of concrete persistence
implementations.

Contract guidelines
-------------------

- All methods are async.
- Checkpoints are versioned per thread. ``save`` is a compare-and-swap on the
  thread's latest version: it raises ``CheckpointConflictError`` when
  another writer advanced the thread first and ``CheckpointWriteError`` when
  the write could not be completed. A failed save leaves no partial record.
- The event repository is append-only.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..schemas.domain import ApprovalRequest, ApprovalStatus, BuilderEvent
from ..schemas.state import ThreadCheckpoint


class CheckpointRepository(Protocol):
    """Persist and load thread checkpoints."""

    async def save(self, checkpoint: ThreadCheckpoint, *, expected_version: Optional[int]) -> None:
        """
        Persist ``checkpoint`` if the thread's latest version is ``expected_version``.

        Args:
            checkpoint: The checkpoint to write. ``checkpoint.version`` must be
                ``expected_version + 1`` (or ``1`` for a new thread).
            expected_version: Latest version the caller observed, ``None`` for a new thread.
        """
        ...

    async def latest(self, thread_id: str) -> Optional[ThreadCheckpoint]:
        """
        Return the most recent checkpoint of a thread, or ``None``.
        """
        ...

    async def history(self, thread_id: str) -> list[ThreadCheckpoint]:
        """
        Return every checkpoint of a thread, oldest first.
        """
        ...


class EventSink(Protocol):
    """Fire-and-forget destination for builder lifecycle events."""

    async def publish(self, event: BuilderEvent) -> None: ...


class EventRepository(EventSink, Protocol):
    """Append-only event store that can also be queried."""

    async def list(self, thread_id: str, limit: int = 100) -> list[BuilderEvent]:
        """
        List events of a thread in publication order.
        """
        ...


class ApprovalRepository(Protocol):
    """Persist approval requests raised by the capability risk gate."""

    async def create(self, approval: ApprovalRequest) -> None: ...

    async def get(self, approval_id: str) -> Optional[ApprovalRequest]: ...

    async def resolve(self, approval_id: str, *, status: ApprovalStatus, decided_by: Optional[str]) -> None:
        """
        Record a decision on a pending approval. Unknown ids are a no-op.
        """
        ...

    async def list(self, *, pending_only: bool = True) -> list[ApprovalRequest]: ...
