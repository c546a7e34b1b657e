from __future__ import annotations

"""Connection manager for external MCP tool servers.

One ``ClientSession`` is held open per configured server for the lifetime of
the manager. Tools are enumerated once at connect time, filtered by each
server's ``tool_filter``, and indexed by name so ``call_tool`` can route a
call without the caller knowing which server owns it. When two servers expose
the same tool name the first connected server keeps it.
"""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import ServerNotFoundError, ToolNotFoundError, TransportError
from .schemas import McpServerConfig, McpToolInfo
from .transport import AsyncMCPTransport, transport_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class McpCallResult:
    """Outcome of a single MCP tool call."""

    success: bool
    content: Optional[str] = None
    error: Optional[str] = None


def _content_to_text(content: Any) -> str:
    parts: List[str] = []
    for block in content or []:
        text = getattr(block, "text", None)
        if text is not None:
            parts.append(str(text))
        else:
            parts.append(str(block))
    return "\n".join(parts)


class McpClientManager:
    """Connect to MCP servers and route tool calls to them."""

    def __init__(self, *, transport_factory: Callable[[McpServerConfig], AsyncMCPTransport] = transport_for) -> None:
        self._transport_factory = transport_factory
        self._stack = AsyncExitStack()
        self._sessions: Dict[str, Any] = {}
        self._tools: Dict[str, McpToolInfo] = {}

    async def __aenter__(self) -> "McpClientManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self, configs: List[McpServerConfig]) -> None:
        """Connect every configured server.

        A server that fails to connect is logged and skipped so the remaining
        servers (and the in-process tools) stay usable.
        """
        for cfg in configs:
            try:
                await self.connect_server(cfg)
            except TransportError as e:
                logger.error(f"Skipping MCP server '{cfg.name}': {e}")

    async def connect_server(self, config: McpServerConfig) -> List[McpToolInfo]:
        """Open a session to one server and register its tools.

        Raises:
            TransportError: If the session cannot be opened or tools cannot be listed.
        """
        transport = self._transport_factory(config)
        try:
            session = await self._stack.enter_async_context(transport.session(config))
            listed = await session.list_tools()
        except Exception as e:
            raise TransportError(config.name, str(e)) from e

        self._sessions[config.name] = session
        registered: List[McpToolInfo] = []
        for tool in getattr(listed, "tools", []) or []:
            name = str(tool.name)
            if not config.tool_filter.allows(name):
                continue
            if name in self._tools:
                logger.warning(
                    f"Tool '{name}' from '{config.name}' shadowed by server '{self._tools[name].server}'"
                )
                continue
            info = McpToolInfo(
                name=name,
                description=str(getattr(tool, "description", "") or ""),
                input_schema=dict(getattr(tool, "inputSchema", None) or {"type": "object", "properties": {}}),
                server=config.name,
            )
            self._tools[name] = info
            registered.append(info)
        logger.info(f"Connected MCP server '{config.name}' with {len(registered)} tools")
        return registered

    def list_tools(self) -> List[McpToolInfo]:
        return list(self._tools.values())

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def server_for(self, tool_name: str) -> str:
        info = self._tools.get(tool_name)
        if info is None:
            raise ToolNotFoundError(tool_name)
        return info.server

    async def call_tool(self, name: str, args: Dict[str, Any]) -> McpCallResult:
        """Invoke a tool on the server that owns it.

        Protocol-level tool errors come back as ``success=False``. Unknown
        tools and transport failures raise so the dispatcher can tag them.
        """
        server = self.server_for(name)
        session = self._sessions.get(server)
        if session is None:
            raise ServerNotFoundError(server)
        try:
            result = await session.call_tool(name, args)
        except Exception as e:
            raise TransportError(server, str(e)) from e

        text = _content_to_text(getattr(result, "content", None))
        if getattr(result, "isError", False):
            return McpCallResult(success=False, error=text or f"Tool '{name}' reported an error")
        return McpCallResult(success=True, content=text)

    async def close(self) -> None:
        await self._stack.aclose()
        self._sessions.clear()
        self._tools.clear()
        self._stack = AsyncExitStack()
