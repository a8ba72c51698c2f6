"""Closed tool set exposed to the language model during a stage.

Tools are a tagged union of two variants:

- ``CatalogQueryTool``: synchronous, read-only catalog lookups
  (``fetch_capabilities``, ``fetch_triggers``).
- ``HumanInputTool``: ``ask_human``; never executed by the runner, it suspends
  the stage instead.

Every tool call requested by the model is validated against the stage's
``ToolRegistry`` before anything runs.
"""

from .registry import (
    ASK_HUMAN,
    FETCH_CAPABILITIES,
    FETCH_TRIGGERS,
    CatalogQueryTool,
    HumanInputRequest,
    HumanInputTool,
    Tool,
    ToolKind,
    ToolRegistry,
    ToolSpec,
    build_tool_registry,
)

__all__ = [
    "ASK_HUMAN",
    "FETCH_CAPABILITIES",
    "FETCH_TRIGGERS",
    "CatalogQueryTool",
    "HumanInputRequest",
    "HumanInputTool",
    "Tool",
    "ToolKind",
    "ToolRegistry",
    "ToolSpec",
    "build_tool_registry",
]
