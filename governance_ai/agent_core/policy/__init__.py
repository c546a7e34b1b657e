"""Policy hooks around tool execution.

- ``PreToolUseHook`` gates each call (deny-list, allow-list, hard constraints).
- ``PostToolUseHook`` audits each call and logs decisions for significant actions.
- ``StopHook`` refuses to complete sessions with undocumented significant actions.
"""

from .constraints import (
    ApprovalLookup,
    ApprovalRequiredEvaluator,
    ConstraintContext,
    ConstraintEvaluator,
    ConstraintOutcome,
    ConstraintRegistry,
    RateLimitEvaluator,
    TrustLevelEvaluator,
    default_registry,
)
from .models import PostToolUseResult, PreToolUseResult, StopHookMode, StopResult
from .post_tool_use import MISSING_REASONING_WARNING, PostToolUseHook
from .pre_tool_use import PreToolUseHook
from .stop import StopHook

__all__ = [
    "ApprovalLookup",
    "ApprovalRequiredEvaluator",
    "ConstraintContext",
    "ConstraintEvaluator",
    "ConstraintOutcome",
    "ConstraintRegistry",
    "RateLimitEvaluator",
    "TrustLevelEvaluator",
    "default_registry",
    "PostToolUseResult",
    "PreToolUseResult",
    "StopHookMode",
    "StopResult",
    "MISSING_REASONING_WARNING",
    "PostToolUseHook",
    "PreToolUseHook",
    "StopHook",
]
