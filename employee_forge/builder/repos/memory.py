"""In-process repository implementations.

Used by tests and single-process deployments. State lives in dictionaries
guarded by an ``asyncio.Lock``; stored objects are copied on the way in and
out so callers never share instances with the store.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import CheckpointConflictError
from ..schemas.domain import ApprovalRequest, ApprovalStatus, BuilderEvent
from ..schemas.state import ThreadCheckpoint


class InMemoryCheckpointRepository:
    def __init__(self) -> None:
        self._by_thread: Dict[str, List[ThreadCheckpoint]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def save(self, checkpoint: ThreadCheckpoint, *, expected_version: Optional[int]) -> None:
        async with self._lock:
            items = self._by_thread[checkpoint.thread_id]
            actual = items[-1].version if items else None
            if actual != expected_version or checkpoint.version != (expected_version or 0) + 1:
                raise CheckpointConflictError(checkpoint.thread_id, expected_version, actual)
            items.append(checkpoint.model_copy(deep=True))

    async def latest(self, thread_id: str) -> Optional[ThreadCheckpoint]:
        async with self._lock:
            items = self._by_thread.get(thread_id)
            return items[-1].model_copy(deep=True) if items else None

    async def history(self, thread_id: str) -> list[ThreadCheckpoint]:
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._by_thread.get(thread_id, [])]


class InMemoryEventRepository:
    def __init__(self) -> None:
        self.events: List[BuilderEvent] = []

    async def publish(self, event: BuilderEvent) -> None:
        self.events.append(event)

    async def list(self, thread_id: str, limit: int = 100) -> list[BuilderEvent]:
        return [e for e in self.events if e.thread_id == thread_id][:limit]


class InMemoryApprovalRepository:
    def __init__(self) -> None:
        self._items: Dict[str, ApprovalRequest] = {}

    async def create(self, approval: ApprovalRequest) -> None:
        self._items[approval.id] = approval.model_copy(deep=True)

    async def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        item = self._items.get(approval_id)
        return item.model_copy(deep=True) if item else None

    async def resolve(self, approval_id: str, *, status: ApprovalStatus, decided_by: Optional[str]) -> None:
        item = self._items.get(approval_id)
        if item is None:
            return
        self._items[approval_id] = item.model_copy(
            update={"status": status, "decided_by": decided_by, "decided_at": datetime.now(timezone.utc)}
        )

    async def list(self, *, pending_only: bool = True) -> list[ApprovalRequest]:
        items = sorted(self._items.values(), key=lambda a: a.requested_at)
        if pending_only:
            items = [a for a in items if a.status == ApprovalStatus.pending]
        return [a.model_copy(deep=True) for a in items]
