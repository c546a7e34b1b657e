from __future__ import annotations

"""Delegated development through a coding-agent CLI.

``developer_invoke`` starts a non-interactive CLI session
(``<cli> -p <prompt> --output-format json``) in a working directory and
returns its result; ``developer_resume`` continues the same CLI session with
follow-up instructions. Session bookkeeping is kept in memory for the lifetime
of the handler set.

The subprocess runner is injectable so the handlers can be exercised without
spawning a real CLI.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from ..errors import ToolExecutionError
from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 20
DEFAULT_TIMEOUT_SECONDS = 600.0


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _preview(text: str, n: int) -> str:
    return text[:n] + ("..." if len(text) > n else "")


@dataclass(frozen=True)
class CliResult:
    success: bool
    output: str
    cli_session_id: Optional[str] = None


CliRunner = Callable[[List[str], str], Awaitable[CliResult]]


@dataclass
class DeveloperSession:
    id: str
    working_directory: str
    cli_session_id: Optional[str] = None
    status: str = "active"
    started_at: str = field(default_factory=_utc_now_iso)
    last_activity: str = field(default_factory=_utc_now_iso)
    turns: List[Dict[str, str]] = field(default_factory=list)

    @property
    def can_resume(self) -> bool:
        return bool(self.cli_session_id) and self.status != "failed"


def build_cli_args(
    *,
    prompt: str,
    resume_session_id: Optional[str] = None,
    max_turns: Optional[int] = None,
    allowed_tools: Optional[List[str]] = None,
    mcp_config_path: Optional[str] = None,
) -> List[str]:
    args = ["-p", prompt]
    if resume_session_id:
        args += ["--resume", resume_session_id]
    if max_turns:
        args += ["--max-turns", str(int(max_turns))]
    if allowed_tools:
        args += ["--allowedTools", ",".join(allowed_tools)]
    if mcp_config_path:
        args += ["--mcp-config", mcp_config_path]
    args += ["--output-format", "json"]
    return args


def parse_cli_output(returncode: Optional[int], stdout: str, stderr: str) -> CliResult:
    if returncode not in (0, None):
        return CliResult(success=False, output=stderr or stdout or f"CLI exited with code {returncode}")
    try:
        parsed = json.loads(stdout)
    except ValueError:
        return CliResult(success=True, output=stdout or "Task completed")
    if not isinstance(parsed, dict):
        return CliResult(success=True, output=stdout)
    return CliResult(
        success=True,
        output=str(parsed.get("result") or stdout),
        cli_session_id=parsed.get("session_id"),
    )


def subprocess_runner(command: str, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> CliRunner:
    """Build a runner that executes ``command`` with the given arguments."""

    async def run(args: List[str], cwd: str) -> CliResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                env=dict(os.environ),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ToolExecutionError("developer", f"Failed to start {command}: {e}") from e

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise ToolExecutionError(
                "developer", f"{command} execution timed out after {timeout_seconds:g} seconds"
            ) from e
        return parse_cli_output(proc.returncode, out.decode(errors="replace"), err.decode(errors="replace"))

    return run


class DeveloperTools(BaseToolHandlerSet):
    """Delegate implementation work to a coding-agent CLI."""

    name = "developer"

    def __init__(
        self,
        *,
        repo_root: str = ".",
        cli_command: str = "claude",
        mcp_config_path: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runner: Optional[CliRunner] = None,
    ) -> None:
        self._repo_root = repo_root
        self._mcp_config_path = mcp_config_path
        self._runner = runner or subprocess_runner(cli_command, timeout_seconds=timeout_seconds)
        self._sessions: Dict[str, DeveloperSession] = {}

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                name="developer_invoke",
                description=(
                    "Invoke a coding agent to perform a development task. Creates a new session that can "
                    "read and write files, run commands and use git. Use this to delegate implementation "
                    "work while retaining oversight."
                ),
                input_schema=schema(
                    {
                        "prompt": {
                            "type": "string",
                            "description": (
                                "The development task to perform. Be specific about what should be "
                                "accomplished, what verification criteria apply, and any constraints."
                            ),
                        },
                        "working_directory": {
                            "type": "string",
                            "description": "Working directory for the session (defaults to repo root)",
                        },
                        "allowed_tools": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Specific tools to allow. If not specified, all tools are available.",
                        },
                        "max_turns": {
                            "type": "number",
                            "description": "Maximum number of turns before stopping (default: 20)",
                        },
                    },
                    ["prompt"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="developer_resume",
                description=(
                    "Resume an existing development session with additional context or feedback. Use this "
                    "to continue iterative development, provide corrections, or guide the session toward "
                    "completion."
                ),
                input_schema=schema(
                    {
                        "session_id": {
                            "type": "string",
                            "description": "The session ID from a previous developer_invoke call",
                        },
                        "prompt": {"type": "string", "description": "Follow-up instructions or feedback"},
                    },
                    ["session_id", "prompt"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="developer_get_session",
                description="Get the status and history of a development session.",
                input_schema=schema(
                    {"session_id": {"type": "string", "description": "The session ID to query"}}, ["session_id"]
                ),
                server=self.name,
            ),
            ToolSpec(
                name="developer_list_sessions",
                description="List development sessions, optionally filtered by status.",
                input_schema=schema(
                    {
                        "status": {
                            "type": "string",
                            "enum": ["active", "completed", "failed", "all"],
                            "description": "Filter by session status (default: all)",
                        },
                        "limit": {"type": "number", "description": "Maximum number of sessions to return (default: 10)"},
                    }
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "developer_invoke": self.developer_invoke,
            "developer_resume": self.developer_resume,
            "developer_get_session": self.developer_get_session,
            "developer_list_sessions": self.developer_list_sessions,
        }

    def _record_turn(self, session: DeveloperSession, prompt: str, result: CliResult) -> None:
        session.turns.append({"prompt": prompt, "response": result.output, "timestamp": _utc_now_iso()})
        session.last_activity = _utc_now_iso()
        if result.cli_session_id:
            session.cli_session_id = result.cli_session_id

    async def developer_invoke(self, args: Dict[str, Any]) -> Dict[str, Any]:
        prompt = str(require(args, "prompt"))
        session = DeveloperSession(
            id=str(uuid4()),
            working_directory=str(args.get("working_directory") or self._repo_root),
        )
        self._sessions[session.id] = session

        cli_args = build_cli_args(
            prompt=prompt,
            max_turns=int(args.get("max_turns") or DEFAULT_MAX_TURNS),
            allowed_tools=list(args.get("allowed_tools") or []),
            mcp_config_path=self._mcp_config_path,
        )
        try:
            result = await self._runner(cli_args, session.working_directory)
        except ToolExecutionError as e:
            session.status = "failed"
            logger.error(f"Developer session {session.id} failed: {e}")
            return {"error": True, "session_id": session.id, "message": str(e)}

        self._record_turn(session, prompt, result)
        session.status = "completed" if result.success else "failed"
        return {
            "session_id": session.id,
            "cli_session_id": session.cli_session_id,
            "status": session.status,
            "output": result.output,
            "can_resume": bool(session.cli_session_id),
        }

    async def developer_resume(self, args: Dict[str, Any]) -> Dict[str, Any]:
        session_id = str(require(args, "session_id"))
        prompt = str(require(args, "prompt"))
        session = self._sessions.get(session_id)
        if session is None:
            return {"error": True, "message": f"Session not found: {session_id}"}
        if not session.cli_session_id:
            return {"error": True, "message": "Session cannot be resumed (no CLI session ID)"}

        cli_args = build_cli_args(
            prompt=prompt,
            resume_session_id=session.cli_session_id,
            mcp_config_path=self._mcp_config_path,
        )
        try:
            result = await self._runner(cli_args, session.working_directory)
        except ToolExecutionError as e:
            session.status = "failed"
            return {"error": True, "session_id": session.id, "message": str(e)}

        self._record_turn(session, prompt, result)
        session.status = "active" if result.success else "failed"
        return {
            "session_id": session.id,
            "cli_session_id": session.cli_session_id,
            "status": session.status,
            "output": result.output,
            "turn_number": len(session.turns),
            "can_resume": True,
        }

    async def developer_get_session(self, args: Dict[str, Any]) -> Dict[str, Any]:
        session_id = str(require(args, "session_id"))
        session = self._sessions.get(session_id)
        if session is None:
            return {"error": True, "message": f"Session not found: {session_id}"}
        return {
            "session_id": session.id,
            "cli_session_id": session.cli_session_id,
            "status": session.status,
            "started_at": session.started_at,
            "last_activity": session.last_activity,
            "working_directory": session.working_directory,
            "total_turns": len(session.turns),
            "turns": [
                {
                    "turn": i + 1,
                    "timestamp": t["timestamp"],
                    "prompt_preview": _preview(t["prompt"], 100),
                    "response_preview": _preview(t["response"], 200),
                }
                for i, t in enumerate(session.turns)
            ],
            "can_resume": session.can_resume,
        }

    async def developer_list_sessions(self, args: Dict[str, Any]) -> Dict[str, Any]:
        status = str(args.get("status") or "all")
        limit = int(args.get("limit") or 10)
        sessions = list(self._sessions.values())
        if status != "all":
            sessions = [s for s in sessions if s.status == status]
        sessions.sort(key=lambda s: s.last_activity, reverse=True)
        sessions = sessions[:limit]
        return {
            "total": len(sessions),
            "sessions": [
                {
                    "session_id": s.id,
                    "status": s.status,
                    "started_at": s.started_at,
                    "last_activity": s.last_activity,
                    "total_turns": len(s.turns),
                    "can_resume": s.can_resume,
                }
                for s in sessions
            ],
        }
