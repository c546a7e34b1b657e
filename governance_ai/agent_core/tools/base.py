from __future__ import annotations

"""Tool protocol and execution data models.

A tool is anything the model can call by name. Tools come from two kinds of
backends:

- external MCP servers, reached through ``McpClientManager``;
- in-process handler sets implementing ``ToolHandlerSet``.

Handler sets should:

- return JSON-serializable dicts as output,
- report expected failures (unknown ids, missing pages) in-band as
  ``{"error": ...}`` instead of raising,
- avoid policy decisions themselves (policy is enforced by the invoker before
  the dispatcher is called).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ..errors import ToolExecutionError


@dataclass(frozen=True)
class ToolSpec:
    """A tool definition as presented to the model."""

    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    server: str = "governance"


@dataclass(frozen=True)
class ToolResult:
    """Structured tool execution result."""

    ok: bool
    output: Any = None
    error: Optional[str] = None

    def as_content(self) -> str:
        """Render the result as tool-result block text."""
        if not self.ok:
            return f"Error: {self.error or 'tool failed'}"
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


class ToolHandlerSet(Protocol):
    """Protocol for in-process tool groups."""

    name: str

    def tool_specs(self) -> List[ToolSpec]: ...

    async def execute(self, tool_name: str, args: Dict[str, Any]) -> ToolResult: ...


Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    """Build an object JSON schema."""
    out: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        out["required"] = list(required)
    return out


def require(args: Dict[str, Any], key: str) -> Any:
    value = args.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ToolExecutionError(key, f"missing required argument '{key}'")
    return value


class BaseToolHandlerSet:
    """Name-indexed handler set.

    Subclasses implement ``tool_specs`` and ``handlers``; ``execute`` routes
    by name and turns the handler's dict into a ``ToolResult``. A dict with a
    truthy ``error`` key is reported as a failed call.
    """

    name: str = "governance"

    def tool_specs(self) -> List[ToolSpec]:
        raise NotImplementedError

    def handlers(self) -> Dict[str, Handler]:
        raise NotImplementedError

    def has_tool(self, tool_name: str) -> bool:
        return tool_name in self.handlers()

    async def execute(self, tool_name: str, args: Dict[str, Any]) -> ToolResult:
        handler = self.handlers().get(tool_name)
        if handler is None:
            return ToolResult(ok=False, error=f"Unknown tool: {tool_name}")
        try:
            output = await handler(dict(args or {}))
        except ToolExecutionError as e:
            return ToolResult(ok=False, error=str(e))
        if isinstance(output, dict) and output.get("error"):
            return ToolResult(ok=False, output=output, error=str(output.get("message") or output["error"]))
        return ToolResult(ok=True, output=output)
