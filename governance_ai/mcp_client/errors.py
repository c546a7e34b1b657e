from __future__ import annotations

class McpClientError(Exception):
    pass


class ServerNotFoundError(McpClientError):
    def __init__(self, server_id: str) -> None:
        super().__init__(f"MCP server not found: '{server_id}'")


class ToolNotFoundError(McpClientError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"No connected MCP server provides tool '{tool_name}'")


class TransportError(McpClientError):
    def __init__(self, server_id: str, message: str) -> None:
        super().__init__(f"Transport failure for MCP server '{server_id}': {message}")
