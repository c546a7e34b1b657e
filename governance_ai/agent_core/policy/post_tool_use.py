from __future__ import annotations

"""Post-tool-use hook.

Audits every completed tool call. For calls to significant actions it turns
the outcome into a numbered ``Decision``: structured decision fields are read
from ``output["decision"]`` when the tool returns them, otherwise a minimal
record is synthesized from the call arguments. A decision without reasoning
is not logged; the hook returns a warning instead and the stop hook later
reports the action as undocumented.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..embeddings import EmbeddingProvider
from ..repos.interfaces import AuditRepository, DecisionRepository, SessionRepository
from ..schemas.config import RoleDefinition
from ..schemas.domain import AuditAction, AuditEntry, Decision, GovernanceRequest
from .models import PostToolUseResult

logger = logging.getLogger(__name__)

MISSING_REASONING_WARNING = "Significant action performed without documented reasoning"

_OPTIONAL_FIELDS = ("considerations", "uncertainties", "reversibility", "would_change_if")


def extract_decision_info(tool_name: str, tool_input: Dict[str, Any], tool_output: Any) -> Dict[str, Any]:
    if isinstance(tool_output, dict) and isinstance(tool_output.get("decision"), dict):
        return dict(tool_output["decision"])
    return {
        "title": f"{tool_name} execution",
        "decision": f"Executed {tool_name} with parameters: {json.dumps(tool_input, default=str)}",
        "reasoning": "No explicit reasoning provided",
    }


class PostToolUseHook:
    """Audit tool calls and log decisions for significant actions."""

    def __init__(
        self,
        *,
        audit: AuditRepository,
        decisions: DecisionRepository,
        sessions: SessionRepository,
        session_id: str,
        project: str,
        embeddings: Optional[EmbeddingProvider] = None,
    ) -> None:
        self._audit = audit
        self._decisions = decisions
        self._sessions = sessions
        self._session_id = session_id
        self._project = project
        self._embeddings = embeddings

    async def process(
        self,
        tool_name: str,
        tool_input: Dict[str, Any],
        tool_output: Any,
        request: GovernanceRequest,
        role: RoleDefinition,
        requires_logging: bool,
    ) -> PostToolUseResult:
        """
        Record a completed tool call.

        Args:
            tool_name: Name of the tool that ran.
            tool_input: Arguments it ran with.
            tool_output: The tool's output (or error text).
            request: The originating request.
            role: The role the session runs as.
            requires_logging: Result of the pre-tool-use check.

        Returns:
            A ``PostToolUseResult`` with the decision id when one was logged.
        """
        warnings: List[str] = []
        await self._audit.log(
            AuditEntry(
                project=self._project,
                session_id=self._session_id,
                action=AuditAction.tool_use_completed.value,
                actor=request.source.identity or "anonymous",
                trust_level=request.trust,
                message=f"Completed tool: {tool_name}",
                details={
                    "tool_name": tool_name,
                    "tool_input": tool_input,
                    "tool_output": tool_output,
                    "trust_level": request.trust.value,
                    "role": role.name,
                },
            )
        )

        if not requires_logging:
            return PostToolUseResult()

        info = extract_decision_info(tool_name, tool_input, tool_output)
        reasoning = str(info.get("reasoning") or "").strip()
        if not reasoning:
            warnings.append(MISSING_REASONING_WARNING)
            logger.warning(f"{tool_name} ran for role {role.name} without documented reasoning")
            return PostToolUseResult(warnings=warnings)

        title = str(info.get("title") or f"{tool_name} execution")
        decision_text = str(info.get("decision") or "")
        embedding: Optional[List[float]] = None
        if self._embeddings is not None:
            try:
                embedding = await self._embeddings.embed(f"{title}\n{decision_text}\n{reasoning}")
            except Exception as e:
                logger.warning(f"Embedding failed for decision '{title}'; storing without embedding: {e}")

        decision = await self._decisions.create(
            Decision(
                title=title,
                decision_maker=request.source.identity or role.name,
                project=self._project,
                decision=decision_text,
                reasoning=reasoning,
                embedding=embedding,
                tags=[tool_name, role.name],
                **{k: info[k] for k in _OPTIONAL_FIELDS if info.get(k) is not None},
            )
        )
        await self._sessions.add_decision(self._session_id, decision.id)
        logger.info(f"Logged decision {decision.id} for {tool_name} ({role.name})")
        return PostToolUseResult(decision_logged=True, decision_id=decision.id, warnings=warnings)
