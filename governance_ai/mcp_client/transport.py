from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from .schemas import McpServerConfig, TransportType


class AsyncMCPTransport(Protocol):
    """Protocol for creating MCP ClientSession connections asynchronously.

    Implementations return an async context manager via ``session(config)``
    that yields an initialized ``ClientSession``.
    """

    def session(self, config: McpServerConfig):  # -> AsyncContextManager[ClientSession]
        ...


class StdioMCPTransport(AsyncMCPTransport):
    """MCP transport that spawns the server as a subprocess and talks over stdio."""

    def session(self, config: McpServerConfig):
        params = StdioServerParameters(
            command=str(config.command),
            args=list(config.args),
            env=dict(config.env) or None,
        )

        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with stdio_client(params) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()


class StreamableHttpMCPTransport(AsyncMCPTransport):
    """MCP transport using the streamable HTTP client."""

    def session(self, config: McpServerConfig):
        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with streamablehttp_client(str(config.url), headers=dict(config.headers) or None) as (
                read_stream,
                write_stream,
                _close_fn,
            ):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()


def transport_for(config: McpServerConfig) -> AsyncMCPTransport:
    """Pick the transport implementation for a server configuration."""
    if config.transport == TransportType.STREAMABLE_HTTP:
        return StreamableHttpMCPTransport()
    return StdioMCPTransport()
