"""Domain and configuration schemas for the governance engine."""

from .base import BaseSchema
from .config import (
    Constraint,
    ConstraintEnforcement,
    ProjectConfig,
    RoleDefinition,
    ToolPermissions,
)
from .domain import (
    AgentSession,
    AuditAction,
    AuditEntry,
    Challenge,
    ChallengeStatus,
    Channel,
    ConversationMessage,
    ConversationStatus,
    ConversationThread,
    Decision,
    DecisionSearchResult,
    GovernanceRequest,
    IntentCategory,
    NotificationType,
    Participant,
    ParticipantType,
    RequestSource,
    SessionStatus,
    ToolUse,
    TrustLevel,
    WikiDraft,
    WikiDraftStatus,
    WikiDraftType,
    WikiPage,
    trust_at_least,
)

__all__ = [
    "BaseSchema",
    "Constraint",
    "ConstraintEnforcement",
    "ProjectConfig",
    "RoleDefinition",
    "ToolPermissions",
    "AgentSession",
    "AuditAction",
    "AuditEntry",
    "Challenge",
    "ChallengeStatus",
    "Channel",
    "ConversationMessage",
    "ConversationStatus",
    "ConversationThread",
    "Decision",
    "DecisionSearchResult",
    "GovernanceRequest",
    "IntentCategory",
    "NotificationType",
    "Participant",
    "ParticipantType",
    "RequestSource",
    "SessionStatus",
    "ToolUse",
    "TrustLevel",
    "WikiDraft",
    "WikiDraftStatus",
    "WikiDraftType",
    "WikiPage",
    "trust_at_least",
]
