from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..repos.interfaces import AuditRepository, SessionRepository
from ..schemas.domain import AgentSession, SessionStatus
from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

logger = logging.getLogger(__name__)


def _session_summary(s: AgentSession) -> Dict[str, Any]:
    return {
        "session_id": s.id,
        "role": s.role,
        "status": SessionStatus(s.status).value,
        "started_at": s.started_at.isoformat(),
        "ended_at": s.ended_at.isoformat() if s.ended_at else None,
        "intent": s.request.intent,
        "trust": s.request.trust.value,
        "tool_uses": len(s.tool_uses),
        "blocked_tool_uses": sum(1 for t in s.tool_uses if t.blocked),
        "decisions_logged": len(s.decisions_logged),
    }


def _parse_since(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.now(timezone.utc) - timedelta(hours=float(value))
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ObservabilityTools(BaseToolHandlerSet):
    """Read-only views over recorded sessions and the audit trail."""

    sessions: SessionRepository
    audit: AuditRepository
    name: str = "observability"

    def tool_specs(self) -> List[ToolSpec]:
        project = {"project_id": {"type": "string", "description": "Project ID"}}
        return [
            ToolSpec(
                name="observability_list_sessions",
                description="List recent agent sessions with tool-use and decision counts.",
                input_schema=schema(
                    {
                        **project,
                        "status": {
                            "type": "string",
                            "enum": [s.value for s in SessionStatus],
                            "description": "Filter by status (optional)",
                        },
                        "role": {"type": "string", "description": "Filter by role (optional)"},
                        "limit": {"type": "number", "description": "Maximum sessions to return (default: 20)"},
                    },
                    ["project_id"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="observability_get_session",
                description="Get one session including its full tool-use log.",
                input_schema=schema({"session_id": {"type": "string", "description": "Session ID"}}, ["session_id"]),
                server=self.name,
            ),
            ToolSpec(
                name="observability_query_audit",
                description="Query the audit trail by session, event type and time.",
                input_schema=schema(
                    {
                        **project,
                        "session_id": {"type": "string", "description": "Restrict to one session (optional)"},
                        "action": {"type": "string", "description": "Event type, e.g. tool_use_attempt (optional)"},
                        "since": {
                            "type": "string",
                            "description": "ISO timestamp, or a number of hours back (optional)",
                        },
                        "limit": {"type": "number", "description": "Maximum entries (default: 50)"},
                    },
                    ["project_id"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="observability_get_metrics",
                description="Aggregate session metrics: status counts, blocked tool uses, decisions per session.",
                input_schema=schema(
                    {
                        **project,
                        "limit": {"type": "number", "description": "Number of recent sessions to include (default: 100)"},
                    },
                    ["project_id"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "observability_list_sessions": self.list_sessions,
            "observability_get_session": self.get_session,
            "observability_query_audit": self.query_audit,
            "observability_get_metrics": self.get_metrics,
        }

    async def list_sessions(self, args: Dict[str, Any]) -> Dict[str, Any]:
        status = args.get("status")
        items = await self.sessions.list(
            str(require(args, "project_id")),
            status=SessionStatus(status) if status else None,
            role=args.get("role") or None,
            limit=int(args.get("limit") or 20),
        )
        return {"sessions": [_session_summary(s) for s in items], "total": len(items)}

    async def get_session(self, args: Dict[str, Any]) -> Dict[str, Any]:
        session_id = str(require(args, "session_id"))
        session = await self.sessions.get(session_id)
        if session is None:
            return {"error": f"Session not found: {session_id}"}
        return session.model_dump(mode="json")

    async def query_audit(self, args: Dict[str, Any]) -> Dict[str, Any]:
        try:
            since = _parse_since(args.get("since"))
        except ValueError:
            return {"error": "Invalid since", "message": f"Cannot parse since value: {args.get('since')}"}
        entries = await self.audit.list(
            str(require(args, "project_id")),
            session_id=args.get("session_id") or None,
            action=args.get("action") or None,
            since=since,
            limit=int(args.get("limit") or 50),
        )
        return {"entries": [e.model_dump(mode="json") for e in entries], "total": len(entries)}

    async def get_metrics(self, args: Dict[str, Any]) -> Dict[str, Any]:
        items = await self.sessions.list(str(require(args, "project_id")), limit=int(args.get("limit") or 100))
        status_counts = Counter(SessionStatus(s.status).value for s in items)
        role_counts = Counter(s.role for s in items)
        tool_uses = sum(len(s.tool_uses) for s in items)
        blocked = sum(1 for s in items for t in s.tool_uses if t.blocked)
        decisions = sum(len(s.decisions_logged) for s in items)
        return {
            "sessions": len(items),
            "by_status": dict(status_counts),
            "by_role": dict(role_counts),
            "tool_uses": tool_uses,
            "blocked_tool_uses": blocked,
            "decisions_logged": decisions,
            "decisions_per_session": round(decisions / len(items), 3) if items else 0.0,
        }
