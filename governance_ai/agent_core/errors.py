from __future__ import annotations

"""Exception hierarchy for the governance engine.

Recoverable failures (policy rejections, tool errors, the conversation depth
ceiling) never surface as exceptions; they are fed back to the model as
tool results. The classes here cover configuration faults and fatal
invocation failures, which propagate to the caller.
"""

from typing import List, Optional


class GovernanceError(Exception):
    pass


class ConfigurationError(GovernanceError):
    pass


class RoutingConfigurationError(ConfigurationError):
    def __init__(self, project: str, category: str, trust: str) -> None:
        super().__init__(
            f"No role in project '{project}' accepts trust level '{trust}' (intent category '{category}')"
        )
        self.project = project
        self.category = category
        self.trust = trust


class ConstraintConfigurationError(ConfigurationError):
    def __init__(self, constraint_type: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Unknown constraint type: '{constraint_type}'")
        self.constraint_type = constraint_type


class SessionBlockedError(GovernanceError):
    def __init__(self, session_id: str, missing_decisions: List[str]) -> None:
        super().__init__(
            f"Session '{session_id}' blocked: significant actions without a logged decision: "
            + ", ".join(missing_decisions)
        )
        self.session_id = session_id
        self.missing_decisions = list(missing_decisions)


class LLMError(GovernanceError):
    pass


class ToolExecutionError(GovernanceError):
    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class PermissionLookupError(GovernanceError):
    pass
