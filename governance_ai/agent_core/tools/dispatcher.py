from __future__ import annotations

"""Tool dispatcher.

The dispatcher is the single name-to-backend map the invoker talks to. It
merges the catalog of connected MCP servers with the in-process handler sets
(in-process handlers win name collisions) and routes calls to the owning
backend.

``execute_tool`` never raises: unknown tools, handler exceptions and
transport errors all come back as ``ToolResult(ok=False)`` so the model can
see and react to them.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ...mcp_client import McpClientError, McpClientManager
from .base import ToolHandlerSet, ToolResult, ToolSpec

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Route tool calls to MCP servers or in-process handler sets."""

    def __init__(
        self,
        *,
        mcp: Optional[McpClientManager] = None,
        handlers: Optional[Iterable[ToolHandlerSet]] = None,
    ) -> None:
        self._mcp = mcp
        self._handler_sets: List[ToolHandlerSet] = list(handlers or [])
        self._index: Dict[str, ToolHandlerSet] = {}
        for handler_set in self._handler_sets:
            self._register(handler_set)

    def _register(self, handler_set: ToolHandlerSet) -> None:
        for spec in handler_set.tool_specs():
            if spec.name in self._index:
                logger.warning(
                    f"Tool '{spec.name}' from '{handler_set.name}' shadowed by '{self._index[spec.name].name}'"
                )
                continue
            self._index[spec.name] = handler_set

    def add_handler_set(self, handler_set: ToolHandlerSet) -> None:
        self._handler_sets.append(handler_set)
        self._register(handler_set)

    def has_tool(self, name: str) -> bool:
        return name in self._index or (self._mcp is not None and self._mcp.has_tool(name))

    def local_tool_spec(self, name: str) -> Optional[ToolSpec]:
        """Spec of an in-process tool, or ``None`` for MCP and unknown tools."""
        handler_set = self._index.get(name)
        if handler_set is None:
            return None
        return next((s for s in handler_set.tool_specs() if s.name == name), None)

    def get_tool_definitions(
        self,
        allowed: Optional[Iterable[str]] = None,
        denied: Optional[Iterable[str]] = None,
    ) -> List[ToolSpec]:
        """
        Return the merged tool catalog.

        Args:
            allowed: If non-empty, only these tool names are returned.
            denied: Tool names that are always removed.

        Returns:
            Tool specs, in-process tools first.
        """
        specs: Dict[str, ToolSpec] = {}
        for handler_set in self._handler_sets:
            for spec in handler_set.tool_specs():
                specs.setdefault(spec.name, spec)
        if self._mcp is not None:
            for info in self._mcp.list_tools():
                if info.name in specs:
                    continue
                specs[info.name] = ToolSpec(
                    name=info.name,
                    description=info.description,
                    input_schema=info.input_schema,
                    server=info.server,
                )

        allowed_set = set(allowed or [])
        denied_set = set(denied or [])
        return [
            spec
            for name, spec in specs.items()
            if name not in denied_set and (not allowed_set or name in allowed_set)
        ]

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> ToolResult:
        handler_set = self._index.get(name)
        if handler_set is not None:
            try:
                return await handler_set.execute(name, args)
            except Exception as e:
                logger.exception(f"Handler '{handler_set.name}' failed on tool '{name}'")
                return ToolResult(ok=False, error=f"{type(e).__name__}: {e}")

        if self._mcp is not None and self._mcp.has_tool(name):
            try:
                res = await self._mcp.call_tool(name, args)
            except McpClientError as e:
                logger.error(f"MCP call '{name}' failed: {e}")
                return ToolResult(ok=False, error=str(e))
            except Exception as e:
                logger.exception(f"MCP call '{name}' raised unexpectedly")
                return ToolResult(ok=False, error=f"{type(e).__name__}: {e}")
            if res.success:
                return ToolResult(ok=True, output=res.content)
            return ToolResult(ok=False, error=res.error)

        return ToolResult(ok=False, error=f"Unknown tool: {name}")
