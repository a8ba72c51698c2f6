"""Tool definitions and registry.

The registry maps a tool name to one of two tool variants. Unlike a free-form
name -> callable mapping, the variants are closed: the step runner branches on
``ToolKind`` and never calls arbitrary code requested by the model.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Union

from pydantic import Field

from ..context import ExecutionContext
from ..errors import UnknownToolError
from ..schemas.base import BaseSchema

ASK_HUMAN = "ask_human"
FETCH_CAPABILITIES = "fetch_capabilities"
FETCH_TRIGGERS = "fetch_triggers"


class ToolKind(str, Enum):
    catalog_query = "catalog_query"
    human_input = "human_input"


class ToolSpec(BaseSchema):
    """Tool description rendered to the language model."""

    name: str
    kind: ToolKind
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class HumanInputRequest(BaseSchema):
    question: str = Field(min_length=1)


@dataclass(frozen=True)
class CatalogQueryTool:
    """Read-only catalog lookup executed inline by the step runner."""

    name: str
    description: str
    query: Literal["capabilities", "triggers"]
    kind: ToolKind = ToolKind.catalog_query

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            kind=self.kind,
            description=self.description,
            parameters={"type": "object", "properties": {}},
        )

    async def invoke(self, ctx: ExecutionContext) -> List[Dict[str, Any]]:
        """Query the catalog and return a JSON-serializable listing."""
        if self.query == "capabilities":
            providers = await ctx.catalog.capabilities(org_id=ctx.org_id)
            return [p.model_dump(mode="json", by_alias=True) for p in providers]
        triggers = await ctx.catalog.triggers(org_id=ctx.org_id)
        return [t.model_dump(mode="json", by_alias=True) for t in triggers]


@dataclass(frozen=True)
class HumanInputTool:
    """Ask the human a question. Suspends the stage until an answer arrives."""

    name: str = ASK_HUMAN
    description: str = (
        "Ask the human a clarifying or approval question. Use only when the answer cannot be "
        "found in the conversation so far."
    )
    kind: ToolKind = ToolKind.human_input

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            kind=self.kind,
            description=self.description,
            parameters=HumanInputRequest.model_json_schema(),
        )

    def parse(self, args: Dict[str, Any]) -> HumanInputRequest:
        """Validate the model's request payload.

        Raises:
            pydantic.ValidationError: If ``question`` is missing or empty.
        """
        return HumanInputRequest.model_validate(args)


Tool = Union[CatalogQueryTool, HumanInputTool]


_BUILTIN_TOOLS: Dict[str, Tool] = {
    ASK_HUMAN: HumanInputTool(),
    FETCH_CAPABILITIES: CatalogQueryTool(
        name=FETCH_CAPABILITIES,
        description="List the capabilities available to the organization, grouped by provider.",
        query="capabilities",
    ),
    FETCH_TRIGGERS: CatalogQueryTool(
        name=FETCH_TRIGGERS,
        description="List the triggers (activation events) available to the organization.",
        query="triggers",
    ),
}


class ToolRegistry:
    """
    Ordered, closed set of tools available to one stage.

    Notes:
        - ``resolve`` raises ``UnknownToolError`` for names outside the set.
        - ``validate_request`` is used by the runner before any execution.
    """

    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            self._tools[tool.name] = tool

    def names(self) -> List[str]:
        return list(self._tools)

    def specs(self) -> List[ToolSpec]:
        return [t.spec() for t in self._tools.values()]

    def has(self, name: str) -> bool:
        return name in self._tools

    def resolve(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            UnknownToolError: If the tool is not part of this registry.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name, self.names()) from None

    def validate_request(self, name: str, args: Dict[str, Any]) -> Tool:
        """Resolve ``name`` and validate ``args`` against the tool's request schema.

        Raises:
            UnknownToolError: If the tool is not part of this registry.
            pydantic.ValidationError: If a human-input request is malformed.
        """
        tool = self.resolve(name)
        if isinstance(tool, HumanInputTool):
            tool.parse(args)
        return tool


def build_tool_registry(*names: str) -> ToolRegistry:
    """Build a registry from built-in tool names (``ask_human``, ``fetch_capabilities``, ``fetch_triggers``)."""
    return ToolRegistry(_BUILTIN_TOOLS[n] for n in names)

