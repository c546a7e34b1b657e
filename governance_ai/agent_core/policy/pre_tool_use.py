from __future__ import annotations

"""Pre-tool-use hook.

Runs before every tool call the model requests. The attempt is audited first,
then the call is checked, in order, against:

1. the role's deny-list,
2. the role's allow-list (when non-empty),
3. every hard constraint, in declaration order.

Soft constraints never block; they are only rendered into the system context.
"""

import logging
from typing import Any, Dict

from ..errors import ConstraintConfigurationError
from ..repos.interfaces import AuditRepository
from ..schemas.config import ConstraintEnforcement, RoleDefinition
from ..schemas.domain import AuditAction, AuditEntry, GovernanceRequest
from .constraints import ConstraintContext, ConstraintRegistry
from .models import PreToolUseResult

logger = logging.getLogger(__name__)


class PreToolUseHook:
    """Gate tool calls for a single session."""

    def __init__(
        self,
        *,
        audit: AuditRepository,
        constraints: ConstraintRegistry,
        session_id: str,
        project: str,
    ) -> None:
        self._audit = audit
        self._constraints = constraints
        self._session_id = session_id
        self._project = project

    async def validate(
        self,
        tool_name: str,
        tool_input: Dict[str, Any],
        request: GovernanceRequest,
        role: RoleDefinition,
    ) -> PreToolUseResult:
        """
        Decide whether a tool call may run.

        Args:
            tool_name: Name of the requested tool.
            tool_input: Arguments the model supplied.
            request: The originating request.
            role: The role the session runs as.

        Returns:
            A ``PreToolUseResult``. ``requires_decision_logging`` is set for
            allowed calls to tools listed in ``role.significant_actions``.
        """
        await self._audit.log(
            AuditEntry(
                project=self._project,
                session_id=self._session_id,
                action=AuditAction.tool_use_attempt.value,
                actor=request.source.identity or "anonymous",
                trust_level=request.trust,
                message=f"Attempting to use tool: {tool_name}",
                details={
                    "tool_name": tool_name,
                    "tool_input": tool_input,
                    "trust_level": request.trust.value,
                    "role": role.name,
                },
            )
        )

        if tool_name in role.tools.denied:
            return PreToolUseResult(
                allowed=False,
                reason=f'Tool "{tool_name}" is explicitly denied for role {role.name}',
            )

        if role.tools.allowed and tool_name not in role.tools.allowed:
            return PreToolUseResult(
                allowed=False,
                reason=f'Tool "{tool_name}" is not in the allowed list for role {role.name}',
            )

        ctx = ConstraintContext(
            project=self._project,
            session_id=self._session_id,
            tool_name=tool_name,
            tool_input=tool_input,
            request=request,
            role=role,
        )
        for constraint in role.constraints:
            if constraint.enforcement != ConstraintEnforcement.hard or not constraint.applies_to(tool_name):
                continue
            try:
                outcome = await self._constraints.evaluate(constraint, ctx)
            except ConstraintConfigurationError as e:
                logger.error(f"Constraint misconfigured for role '{role.name}' in '{self._project}': {e}")
                return PreToolUseResult(
                    allowed=False,
                    reason=f"Constraint configuration error ({constraint.type}): {e}",
                )
            if outcome.violated:
                logger.info(f"Hard constraint '{constraint.type}' blocked {tool_name} for role {role.name}")
                return PreToolUseResult(
                    allowed=False,
                    reason=f"Hard constraint violated: {constraint.description or constraint.type}",
                )

        return PreToolUseResult(
            allowed=True,
            requires_decision_logging=tool_name in role.significant_actions,
        )
