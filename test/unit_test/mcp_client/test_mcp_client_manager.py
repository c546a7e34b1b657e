from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from pydantic import ValidationError

from governance_ai.mcp_client import (
    McpClientManager,
    McpServerConfig,
    ToolFilter,
    ToolNotFoundError,
    TransportError,
    TransportType,
)
from governance_ai.mcp_client.transport import StdioMCPTransport, StreamableHttpMCPTransport, transport_for


class _FakeSession:
    def __init__(self, tools: List[str], *, fail_calls: bool = False) -> None:
        self._tools = tools
        self.fail_calls = fail_calls
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    async def list_tools(self):
        return SimpleNamespace(
            tools=[
                SimpleNamespace(name=n, description=f"{n} tool", inputSchema={"type": "object", "properties": {}})
                for n in self._tools
            ]
        )

    async def call_tool(self, name: str, args: Dict[str, Any]):
        self.calls.append((name, args))
        if self.fail_calls:
            raise ConnectionError("pipe closed")
        if name == "fails":
            return SimpleNamespace(content=[SimpleNamespace(text="bad input")], isError=True)
        return SimpleNamespace(content=[SimpleNamespace(text="line 1"), SimpleNamespace(text="line 2")], isError=False)


class _FakeTransport:
    def __init__(self, sessions: Dict[str, _FakeSession], broken: tuple = ()) -> None:
        self.sessions = sessions
        self.broken = broken
        self.closed: List[str] = []

    def session(self, config: McpServerConfig):
        @asynccontextmanager
        async def _cm():
            if config.name in self.broken:
                raise OSError("spawn failed")
            try:
                yield self.sessions[config.name]
            finally:
                self.closed.append(config.name)

        return _cm()


def _stdio(name: str, **kwargs) -> McpServerConfig:
    return McpServerConfig(name=name, command="npx", **kwargs)


@pytest.fixture
def transport() -> _FakeTransport:
    return _FakeTransport(
        {
            "github": _FakeSession(["search_code", "get_file", "delete_repo"]),
            "files": _FakeSession(["get_file", "fails"]),
        },
        broken=("dead",),
    )


@pytest.mark.asyncio
async def test_connect_filters_and_first_server_wins(transport: _FakeTransport) -> None:
    mgr = McpClientManager(transport_factory=lambda cfg: transport)
    await mgr.connect(
        [
            _stdio("github", tool_filter=ToolFilter(exclude=["delete_repo"])),
            _stdio("dead"),
            _stdio("files"),
        ]
    )
    assert [(t.name, t.server) for t in mgr.list_tools()] == [
        ("search_code", "github"),
        ("get_file", "github"),
        ("fails", "files"),
    ]
    assert not mgr.has_tool("delete_repo")
    assert mgr.server_for("fails") == "files"
    with pytest.raises(ToolNotFoundError):
        mgr.server_for("nope")

    await mgr.close()
    assert sorted(transport.closed) == ["files", "github"]
    assert mgr.list_tools() == []


@pytest.mark.asyncio
async def test_connect_server_raises_transport_error(transport: _FakeTransport) -> None:
    mgr = McpClientManager(transport_factory=lambda cfg: transport)
    with pytest.raises(TransportError, match="spawn failed"):
        await mgr.connect_server(_stdio("dead"))


@pytest.mark.asyncio
async def test_call_tool(transport: _FakeTransport) -> None:
    async with McpClientManager(transport_factory=lambda cfg: transport) as mgr:
        await mgr.connect([_stdio("github"), _stdio("files")])

        ok = await mgr.call_tool("search_code", {"q": "merge"})
        assert ok.success and ok.content == "line 1\nline 2"
        assert transport.sessions["github"].calls == [("search_code", {"q": "merge"})]

        bad = await mgr.call_tool("fails", {})
        assert not bad.success and bad.error == "bad input"

        transport.sessions["github"].fail_calls = True
        with pytest.raises(TransportError, match="pipe closed"):
            await mgr.call_tool("search_code", {})

        with pytest.raises(ToolNotFoundError):
            await mgr.call_tool("unknown", {})


def test_server_config_validation() -> None:
    with pytest.raises(ValidationError):
        McpServerConfig(name="x")
    with pytest.raises(ValidationError):
        McpServerConfig(name="x", transport=TransportType.STREAMABLE_HTTP)
    http = McpServerConfig(name="x", transport="streamable_http", url="http://mock/mcp/")
    assert isinstance(transport_for(http), StreamableHttpMCPTransport)
    assert isinstance(transport_for(_stdio("y")), StdioMCPTransport)


def test_tool_filter() -> None:
    f = ToolFilter(include=["a", "b"], exclude=["b"])
    assert f.allows("a")
    assert not f.allows("b")
    assert not f.allows("c")
    assert ToolFilter().allows("anything")
