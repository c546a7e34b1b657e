from __future__ import annotations

"""Project and role configuration models.

The configuration loader lives outside the engine. It hands over an already
validated ``ProjectConfig``; the engine only reads it.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from ...mcp_client.schemas import McpServerConfig
from .base import BaseSchema
from .domain import TrustLevel


class ConstraintEnforcement(str, Enum):
    hard = "hard"
    soft = "soft"


class Constraint(BaseSchema):
    """A declarative limit on a role's actions.

    ``type`` is an open tag resolved by the constraint registry; built-in
    types are ``trust_level``, ``rate_limit`` and ``approval_required``.
    Only ``hard`` constraints can block a tool call.
    """

    type: str
    description: str = ""
    enforcement: ConstraintEnforcement = ConstraintEnforcement.hard
    parameters: Dict[str, Any] = Field(default_factory=dict)
    on_actions: Optional[List[str]] = Field(
        default=None,
        description="If set, the constraint applies only to these tool names.",
    )

    def applies_to(self, tool_name: str) -> bool:
        return self.on_actions is None or tool_name in self.on_actions


class ToolPermissions(BaseSchema):
    allowed: List[str] = Field(default_factory=list, description="Empty means every tool is allowed.")
    denied: List[str] = Field(default_factory=list, description="Always wins over ``allowed``.")


class RoleDefinition(BaseSchema):
    name: str
    purpose: str = ""
    accepts_trust: List[TrustLevel] = Field(default_factory=list)
    tools: ToolPermissions = Field(default_factory=ToolPermissions)
    significant_actions: List[str] = Field(default_factory=list)
    escalates_to: Optional[str] = None
    instructions: str = ""
    constraints: List[Constraint] = Field(default_factory=list)
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)

    def accepts(self, trust: TrustLevel) -> bool:
        return TrustLevel(trust) in self.accepts_trust


class ProjectConfig(BaseSchema):
    id: str
    name: str = ""
    repository: str = Field(default="", description="Host repository as 'owner/name'.")
    constitution: str = ""
    roles: List[RoleDefinition] = Field(default_factory=list)
    routing: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Intent category to ordered candidate role names; overrides the built-in table.",
    )
    mcp_servers: List[McpServerConfig] = Field(default_factory=list)

    def get_role(self, name: str) -> Optional[RoleDefinition]:
        for role in self.roles:
            if role.name == name:
                return role
        return None
