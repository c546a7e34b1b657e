from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class StopHookMode(str, Enum):
    """
    How the invoker reacts when a session ends with undocumented significant actions.

    Attributes:
        warn: Log a warning and still return the response.
        block: Mark the session blocked and raise ``SessionBlockedError``.
    """

    warn = "warn"
    block = "block"


@dataclass(frozen=True)
class PreToolUseResult:
    """Outcome of the pre-tool-use check for a single tool call."""

    allowed: bool
    reason: Optional[str] = None
    requires_decision_logging: bool = False


@dataclass(frozen=True)
class PostToolUseResult:
    decision_logged: bool = False
    decision_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StopResult:
    can_complete: bool
    missing_decisions: List[str] = field(default_factory=list)
    reason: Optional[str] = None
