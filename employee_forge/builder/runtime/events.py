"""Fire-and-forget publishing of builder lifecycle events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..repos.interfaces import EventSink
from ..schemas.domain import BuilderEvent, BuilderEventType

logger = logging.getLogger(__name__)


class EventPublisher:
    """Wraps an optional ``EventSink``; sink failures never fail a thread."""

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink = sink

    async def publish(
        self,
        thread_id: str,
        type: BuilderEventType,
        *,
        branch_id: Optional[str] = None,
        org_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._sink is None:
            return
        event = BuilderEvent(
            thread_id=thread_id,
            type=type,
            branch_id=branch_id,
            org_id=org_id,
            payload=payload or {},
        )
        try:
            await self._sink.publish(event)
        except Exception as e:
            logger.warning("Dropping %s event for thread %s: %s", type.value, thread_id, e)
