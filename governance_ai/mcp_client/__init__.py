"""Client side of the Model Context Protocol for external tool servers.

Servers are reached over stdio (spawned subprocess) or streamable HTTP using
the official ``mcp`` SDK. ``McpClientManager`` keeps one session per server
and exposes a flat, name-indexed tool catalog to the tool dispatcher.
"""

from .errors import McpClientError, ServerNotFoundError, ToolNotFoundError, TransportError
from .manager import McpCallResult, McpClientManager
from .schemas import McpServerConfig, McpToolInfo, ToolFilter, TransportType

__all__ = [
    "McpClientError",
    "ServerNotFoundError",
    "ToolNotFoundError",
    "TransportError",
    "McpCallResult",
    "McpClientManager",
    "McpServerConfig",
    "McpToolInfo",
    "ToolFilter",
    "TransportType",
]
