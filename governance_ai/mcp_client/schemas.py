from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TransportType(str, Enum):
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable_http"


class ToolFilter(BaseModel):
    """Include/exclude filter applied to a server's tool list at connect time."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    include: Optional[List[str]] = Field(
        None, description="If set, only these tool names are exposed from the server."
    )
    exclude: List[str] = Field(default_factory=list, description="Tool names hidden from the server.")

    def allows(self, name: str) -> bool:
        if name in self.exclude:
            return False
        if self.include is not None and name not in self.include:
            return False
        return True


class McpServerConfig(BaseModel):
    """Connection settings for one external MCP tool server."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = Field(
        ...,
        description="Internal name for the MCP server.",
        min_length=1,
        max_length=128,
        examples=["github-mcp", "filesystem"],
    )
    transport: TransportType = Field(TransportType.STDIO, description="How to reach the server.")
    command: Optional[str] = Field(None, description="Executable for stdio servers.", examples=["npx"])
    args: List[str] = Field(default_factory=list, description="Arguments for the stdio executable.")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment for the stdio process.")
    url: Optional[str] = Field(
        None,
        description="Endpoint URL for streamable HTTP servers.",
        examples=["http://localhost:8000/mcp/"],
    )
    headers: Dict[str, str] = Field(default_factory=dict, description="HTTP headers sent to the server.")
    tool_filter: ToolFilter = Field(default_factory=ToolFilter)

    @model_validator(mode="after")
    def _check_endpoint(self) -> "McpServerConfig":
        if self.transport == TransportType.STDIO and not self.command:
            raise ValueError(f"stdio server '{self.name}' requires a command")
        if self.transport == TransportType.STREAMABLE_HTTP and not self.url:
            raise ValueError(f"http server '{self.name}' requires a url")
        return self


class McpToolInfo(BaseModel):
    """A tool advertised by a connected server."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    server: str
