from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_TRUST_ORDER = ("anonymous", "contributor", "authorized", "elevated")


class TrustLevel(str, Enum):
    """Ordered trust tiers: anonymous < contributor < authorized < elevated.

    Comparisons use the tier order, not string order.
    """

    anonymous = "anonymous"
    contributor = "contributor"
    authorized = "authorized"
    elevated = "elevated"

    @property
    def rank(self) -> int:
        return _TRUST_ORDER.index(self.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TrustLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, TrustLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, TrustLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, TrustLevel):
            return NotImplemented
        return self.rank >= other.rank


def trust_at_least(level: TrustLevel, minimum: TrustLevel) -> bool:
    """Return True when ``level`` meets or exceeds ``minimum``."""
    return TrustLevel(level).rank >= TrustLevel(minimum).rank


class Channel(str, Enum):
    github_webhook = "github_webhook"
    public_api = "public_api"
    contributor_api = "contributor_api"
    admin_cli = "admin_cli"


class IntentCategory(str, Enum):
    triage = "triage"
    governance = "governance"
    review = "review"
    development = "development"
    maintenance = "maintenance"
    unknown = "unknown"


class SessionStatus(str, Enum):
    active = "active"
    completed = "completed"
    failed = "failed"
    blocked = "blocked"


class DecisionStatus(str, Enum):
    adopted = "adopted"
    superseded = "superseded"
    reversed = "reversed"


class ChallengeStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


class WikiDraftType(str, Enum):
    new_page = "new_page"
    edit_page = "edit_page"


class WikiDraftStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ParticipantType(str, Enum):
    role = "role"
    human = "human"
    external = "external"


class ConversationStatus(str, Enum):
    active = "active"
    resolved = "resolved"
    stale = "stale"


class NotificationType(str, Enum):
    escalation = "escalation"
    work_request = "work_request"
    review_request = "review_request"
    fyi = "fyi"


class AuditAction(str, Enum):
    tool_use_attempt = "tool_use_attempt"
    tool_use_completed = "tool_use_completed"
    session_completed = "session_completed"
    session_completion_blocked = "session_completion_blocked"
    session_force_completed = "session_force_completed"


class RequestSource(BaseSchema):
    channel: Channel
    identity: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GovernanceRequest(BaseSchema):
    """An inbound request. Only ``trust`` is refined after creation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_utc_now)
    trust: TrustLevel = TrustLevel.anonymous
    source: RequestSource
    project: str
    intent: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class ToolUse(BaseSchema):
    timestamp: datetime = Field(default_factory=_utc_now)
    tool_name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    blocked: bool = False
    block_reason: Optional[str] = None


class AgentSession(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    project: str
    role: str
    request: GovernanceRequest
    started_at: datetime = Field(default_factory=_utc_now)
    ended_at: Optional[datetime] = None
    status: SessionStatus = SessionStatus.active

    tool_uses: List[ToolUse] = Field(default_factory=list)
    decisions_logged: List[str] = Field(default_factory=list)
    escalations: List[str] = Field(default_factory=list)


class Decision(BaseSchema):
    """Immutable record of a significant action.

    ``id`` is assigned by the repository as ``{project}-{number:04d}``.
    """

    id: str = ""
    decision_number: int = 0
    title: str
    date: str = Field(default_factory=lambda: _utc_now().date().isoformat())
    status: DecisionStatus = DecisionStatus.adopted
    decision_maker: str
    project: str

    decision: str
    reasoning: str = ""
    considerations: Optional[str] = None
    uncertainties: Optional[str] = None
    reversibility: Optional[str] = None
    would_change_if: Optional[str] = None

    embedding: Optional[List[float]] = None
    related_decisions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class DecisionSearchResult(BaseSchema):
    decision: Decision
    similarity: float


class AuditEntry(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_utc_now)
    project: str
    session_id: Optional[str] = None
    action: str
    actor: str = "anonymous"
    trust_level: Optional[TrustLevel] = None
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)


class Challenge(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    decision_id: str
    project: str
    submitted_by: str
    submitted_at: datetime = Field(default_factory=_utc_now)
    status: ChallengeStatus = ChallengeStatus.pending

    argument: str
    evidence: Optional[str] = None

    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None
    response: Optional[str] = None
    outcome: Optional[str] = None


class WikiPage(BaseSchema):
    path: str
    title: str
    content: str
    last_modified: Optional[datetime] = None
    modified_by: Optional[str] = None
    summary: str = ""


class WikiDraft(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    project: str
    type: WikiDraftType
    page_path: str
    proposed_content: str
    original_content: Optional[str] = None
    proposed_by: str
    proposed_at: datetime = Field(default_factory=_utc_now)
    edit_summary: str = ""
    status: WikiDraftStatus = WikiDraftStatus.pending
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    feedback: Optional[str] = None


class Participant(BaseSchema):
    type: ParticipantType
    id: str

    def key(self) -> str:
        return f"{ParticipantType(self.type).value}:{self.id}"


def participant_set_key(participants: List[Participant]) -> str:
    """Order-independent identity of a participant set."""
    return "|".join(sorted(p.key() for p in participants))


class ConversationThread(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    project: str
    participants: List[Participant]
    status: ConversationStatus = ConversationStatus.active
    topic: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    resolution: Optional[str] = None


class ConversationMessage(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    conversation_id: str
    from_participant: Participant
    content: str
    timestamp: datetime = Field(default_factory=_utc_now)
