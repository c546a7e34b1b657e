from __future__ import annotations

import json
from typing import List

import pytest

from governance_ai.agent_core.errors import ToolExecutionError
from governance_ai.agent_core.tools import CliResult, DeveloperTools, build_cli_args, parse_cli_output


class _Runner:
    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls: List[tuple[List[str], str]] = []

    async def __call__(self, args: List[str], cwd: str) -> CliResult:
        self.calls.append((args, cwd))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_build_cli_args() -> None:
    assert build_cli_args(prompt="fix it") == ["-p", "fix it", "--output-format", "json"]
    assert build_cli_args(
        prompt="go",
        resume_session_id="cli-1",
        max_turns=5,
        allowed_tools=["Read", "Edit"],
        mcp_config_path="/etc/mcp.json",
    ) == [
        "-p",
        "go",
        "--resume",
        "cli-1",
        "--max-turns",
        "5",
        "--allowedTools",
        "Read,Edit",
        "--mcp-config",
        "/etc/mcp.json",
        "--output-format",
        "json",
    ]


def test_parse_cli_output() -> None:
    ok = parse_cli_output(0, json.dumps({"result": "done", "session_id": "cli-9"}), "")
    assert ok == CliResult(success=True, output="done", cli_session_id="cli-9")
    assert parse_cli_output(0, "plain text", "") == CliResult(success=True, output="plain text")
    assert parse_cli_output(0, "", "") == CliResult(success=True, output="Task completed")
    assert parse_cli_output(2, "", "bad flag") == CliResult(success=False, output="bad flag")
    assert parse_cli_output(1, "", "").output == "CLI exited with code 1"


@pytest.mark.asyncio
async def test_invoke_then_resume() -> None:
    runner = _Runner(
        CliResult(success=True, output="implemented", cli_session_id="cli-1"),
        CliResult(success=True, output="tests added", cli_session_id="cli-1"),
    )
    tools = DeveloperTools(repo_root="/repo", runner=runner)

    first = await tools.execute("developer_invoke", {"prompt": "implement export", "max_turns": 3})
    assert first.ok
    assert first.output["status"] == "completed"
    assert first.output["can_resume"] is True
    args, cwd = runner.calls[0]
    assert cwd == "/repo"
    assert args[:2] == ["-p", "implement export"]
    assert "--max-turns" in args and "3" in args

    session_id = first.output["session_id"]
    second = await tools.execute("developer_resume", {"session_id": session_id, "prompt": "add tests"})
    assert second.ok
    assert second.output["turn_number"] == 2
    assert runner.calls[1][0][2:4] == ["--resume", "cli-1"]

    detail = await tools.execute("developer_get_session", {"session_id": session_id})
    assert detail.output["total_turns"] == 2
    assert detail.output["turns"][1]["prompt_preview"] == "add tests"

    listed = await tools.execute("developer_list_sessions", {"status": "active"})
    assert [s["session_id"] for s in listed.output["sessions"]] == [session_id]


@pytest.mark.asyncio
async def test_runner_failure_marks_session_failed() -> None:
    tools = DeveloperTools(runner=_Runner(ToolExecutionError("developer", "claude execution timed out")))
    res = await tools.execute("developer_invoke", {"prompt": "slow task"})
    assert not res.ok
    assert "timed out" in (res.error or "")

    listed = await tools.execute("developer_list_sessions", {"status": "failed"})
    assert listed.output["total"] == 1
    assert listed.output["sessions"][0]["can_resume"] is False


@pytest.mark.asyncio
async def test_resume_errors() -> None:
    tools = DeveloperTools(runner=_Runner(CliResult(success=True, output="done")))
    unknown = await tools.execute("developer_resume", {"session_id": "nope", "prompt": "x"})
    assert not unknown.ok and unknown.error == "Session not found: nope"

    first = await tools.execute("developer_invoke", {"prompt": "no session id"})
    assert first.output["can_resume"] is False
    stuck = await tools.execute("developer_resume", {"session_id": first.output["session_id"], "prompt": "more"})
    assert not stuck.ok
    assert stuck.error == "Session cannot be resumed (no CLI session ID)"
