from __future__ import annotations

"""Constraint evaluators.

A role's constraints carry an open ``type`` tag. The ``ConstraintRegistry``
maps each tag to a ``ConstraintEvaluator``; the pre-tool-use hook asks the
registry to evaluate every hard constraint before a tool runs.

Built-in evaluators
-------------------

- ``trust_level``: the request's trust must be at least ``min_trust``.
- ``rate_limit``: at most ``limit`` attempts of the tool by the role within
  ``window_seconds``, counted from the audit trail.
- ``approval_required``: an ``ApprovalLookup`` must confirm that
  ``approver`` approved the tool for this request.

An unregistered type raises ``ConstraintConfigurationError`` so a typo in a
project configuration blocks the call instead of silently allowing it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from ..errors import ConstraintConfigurationError
from ..repos.interfaces import AuditRepository
from ..schemas.config import Constraint, RoleDefinition
from ..schemas.domain import AuditAction, GovernanceRequest, TrustLevel, trust_at_least

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConstraintContext:
    """Everything an evaluator may look at for one tool call."""

    project: str
    session_id: str
    tool_name: str
    tool_input: Dict[str, Any]
    request: GovernanceRequest
    role: RoleDefinition


@dataclass(frozen=True)
class ConstraintOutcome:
    violated: bool
    detail: Optional[str] = None


class ConstraintEvaluator(Protocol):
    """Protocol for constraint type implementations."""

    async def evaluate(self, constraint: Constraint, ctx: ConstraintContext) -> ConstraintOutcome: ...


class ApprovalLookup(Protocol):
    """Answer whether a human approver signed off on a tool call."""

    async def is_approved(self, *, approver: str, tool_name: str, request: GovernanceRequest) -> bool: ...


def _require(constraint: Constraint, key: str) -> Any:
    if key not in constraint.parameters:
        raise ConstraintConfigurationError(
            constraint.type, f"Constraint '{constraint.type}' is missing parameter '{key}'"
        )
    return constraint.parameters[key]


class TrustLevelEvaluator:
    async def evaluate(self, constraint: Constraint, ctx: ConstraintContext) -> ConstraintOutcome:
        raw = _require(constraint, "min_trust")
        try:
            minimum = TrustLevel(raw)
        except ValueError as e:
            raise ConstraintConfigurationError(constraint.type, f"Invalid min_trust '{raw}'") from e
        if trust_at_least(ctx.request.trust, minimum):
            return ConstraintOutcome(violated=False)
        return ConstraintOutcome(
            violated=True,
            detail=f"trust {TrustLevel(ctx.request.trust).value} below {minimum.value}",
        )


@dataclass
class RateLimitEvaluator:
    """Count prior ``tool_use_attempt`` audit entries for this role and tool.

    The attempt under evaluation has already been audited by the time
    constraints run, so the call is allowed while the count is ``<= limit``.
    """

    audit: AuditRepository
    clock: Callable[[], datetime] = _utc_now

    async def evaluate(self, constraint: Constraint, ctx: ConstraintContext) -> ConstraintOutcome:
        try:
            limit = int(_require(constraint, "limit"))
            window = float(_require(constraint, "window_seconds"))
        except (TypeError, ValueError) as e:
            raise ConstraintConfigurationError(constraint.type, f"Invalid rate_limit parameters: {e}") from e

        since = self.clock() - timedelta(seconds=window)
        count = await self.audit.count_since(
            ctx.project,
            AuditAction.tool_use_attempt.value,
            since,
            match={"role": ctx.role.name, "tool_name": ctx.tool_name},
        )
        if count > limit:
            return ConstraintOutcome(violated=True, detail=f"{count} attempts in {window:g}s (limit {limit})")
        return ConstraintOutcome(violated=False)


@dataclass
class ApprovalRequiredEvaluator:
    lookup: Optional[ApprovalLookup] = None

    async def evaluate(self, constraint: Constraint, ctx: ConstraintContext) -> ConstraintOutcome:
        approver = str(_require(constraint, "approver"))
        if self.lookup is None:
            return ConstraintOutcome(violated=True, detail=f"no approval from {approver}")
        approved = await self.lookup.is_approved(approver=approver, tool_name=ctx.tool_name, request=ctx.request)
        if approved:
            return ConstraintOutcome(violated=False)
        return ConstraintOutcome(violated=True, detail=f"no approval from {approver}")


class ConstraintRegistry:
    """Map constraint type tags to evaluators."""

    def __init__(self, evaluators: Optional[Dict[str, ConstraintEvaluator]] = None) -> None:
        self._evaluators: Dict[str, ConstraintEvaluator] = dict(evaluators or {})

    def register(self, constraint_type: str, evaluator: ConstraintEvaluator) -> None:
        self._evaluators[constraint_type] = evaluator

    def has(self, constraint_type: str) -> bool:
        return constraint_type in self._evaluators

    def get(self, constraint_type: str) -> ConstraintEvaluator:
        """
        Resolve the evaluator for a type.

        Raises:
            ConstraintConfigurationError: If nothing is registered for the type.
        """
        try:
            return self._evaluators[constraint_type]
        except KeyError as e:
            raise ConstraintConfigurationError(constraint_type) from e

    async def evaluate(self, constraint: Constraint, ctx: ConstraintContext) -> ConstraintOutcome:
        return await self.get(constraint.type).evaluate(constraint, ctx)


def default_registry(
    *,
    audit: AuditRepository,
    approvals: Optional[ApprovalLookup] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ConstraintRegistry:
    """Build a registry with the built-in evaluators."""
    rate_limit = RateLimitEvaluator(audit=audit) if clock is None else RateLimitEvaluator(audit=audit, clock=clock)
    return ConstraintRegistry(
        {
            "trust_level": TrustLevelEvaluator(),
            "rate_limit": rate_limit,
            "approval_required": ApprovalRequiredEvaluator(lookup=approvals),
        }
    )
