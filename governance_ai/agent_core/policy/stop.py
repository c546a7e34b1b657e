from __future__ import annotations

import logging
from typing import List

from ..repos.interfaces import AuditRepository, SessionRepository
from ..schemas.config import RoleDefinition
from ..schemas.domain import AuditAction, AuditEntry, GovernanceRequest, SessionStatus, TrustLevel
from .models import StopHookMode, StopResult

logger = logging.getLogger(__name__)


class StopHook:
    """
    Validate and finalize a session.

    A session may complete only when every significant action it performed is
    backed by at least one logged decision. When that does not hold the
    completion is audited as blocked and the session is left open (``warn``)
    or marked ``blocked`` (``block``).
    """

    def __init__(
        self,
        *,
        sessions: SessionRepository,
        audit: AuditRepository,
        session_id: str,
        project: str,
        mode: StopHookMode = StopHookMode.warn,
    ) -> None:
        self._sessions = sessions
        self._audit = audit
        self._session_id = session_id
        self._project = project
        self._mode = StopHookMode(mode)

    @property
    def mode(self) -> StopHookMode:
        return self._mode

    async def validate(
        self,
        request: GovernanceRequest,
        role: RoleDefinition,
        actions_performed: List[str],
        decisions_logged: List[str],
    ) -> StopResult:
        missing = [a for a in actions_performed if a in role.significant_actions and not decisions_logged]

        if missing:
            await self._audit.log(
                AuditEntry(
                    project=self._project,
                    session_id=self._session_id,
                    action=AuditAction.session_completion_blocked.value,
                    actor=request.source.identity or "anonymous",
                    trust_level=request.trust,
                    message="Session blocked due to missing decision logging",
                    details={"missing_decisions": missing, "role": role.name, "mode": self._mode.value},
                )
            )
            if self._mode == StopHookMode.block:
                await self._sessions.complete(self._session_id, status=SessionStatus.blocked)
            return StopResult(
                can_complete=False,
                missing_decisions=missing,
                reason="Cannot complete session: significant actions were not properly logged",
            )

        await self._sessions.complete(self._session_id, status=SessionStatus.completed)
        await self._audit.log(
            AuditEntry(
                project=self._project,
                session_id=self._session_id,
                action=AuditAction.session_completed.value,
                actor=request.source.identity or "anonymous",
                trust_level=request.trust,
                message="Session completed successfully",
                details={"role": role.name, "decisions_logged": len(decisions_logged)},
            )
        )
        return StopResult(can_complete=True)

    async def force_complete(self, status: SessionStatus, reason: str) -> None:
        """Finalize the session regardless of logged decisions (error paths)."""
        status = SessionStatus(status)
        await self._sessions.complete(self._session_id, status=status)
        await self._audit.log(
            AuditEntry(
                project=self._project,
                session_id=self._session_id,
                action=AuditAction.session_force_completed.value,
                actor="system",
                trust_level=TrustLevel.anonymous,
                message=f"Session force completed: {status.value}",
                details={"reason": reason},
            )
        )
        logger.info(f"Session {self._session_id} force completed as {status.value}: {reason}")
