"""Persistence for checkpoints, lifecycle events and approval requests.

``interfaces`` holds the Protocols the engine depends on; ``memory`` and
``sql`` provide in-process and SQLAlchemy implementations.
"""

from .interfaces import ApprovalRepository, CheckpointRepository, EventRepository, EventSink
from .memory import InMemoryApprovalRepository, InMemoryCheckpointRepository, InMemoryEventRepository

__all__ = [
    "ApprovalRepository",
    "CheckpointRepository",
    "EventRepository",
    "EventSink",
    "InMemoryApprovalRepository",
    "InMemoryCheckpointRepository",
    "InMemoryEventRepository",
]
