from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from governance_ai.agent_core.schemas.config import (
    Constraint,
    ProjectConfig,
    RoleDefinition,
    ToolPermissions,
)
from governance_ai.agent_core.schemas.domain import (
    AgentSession,
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
    Participant,
    RequestSource,
    SessionStatus,
    ToolUse,
    TrustLevel,
    WikiDraft,
    WikiDraftStatus,
    participant_set_key,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _SessionsRepo:
    def __init__(self) -> None:
        self.by_id: Dict[str, AgentSession] = {}
        self.completions: List[tuple[str, SessionStatus]] = []

    async def create(self, session: AgentSession) -> AgentSession:
        self.by_id[session.id] = session
        return session

    async def get(self, session_id: str) -> Optional[AgentSession]:
        return self.by_id.get(session_id)

    async def append_tool_use(self, session_id: str, tool_use: ToolUse) -> None:
        self.by_id[session_id].tool_uses.append(tool_use)

    async def add_decision(self, session_id: str, decision_id: str) -> None:
        self.by_id[session_id].decisions_logged.append(decision_id)

    async def add_escalation(self, session_id: str, escalation: str) -> None:
        self.by_id[session_id].escalations.append(escalation)

    async def complete(self, session_id: str, *, status: SessionStatus, ended_at: Optional[datetime] = None) -> None:
        self.completions.append((session_id, SessionStatus(status)))
        s = self.by_id.get(session_id)
        if s is not None:
            s.status = SessionStatus(status)
            s.ended_at = ended_at or _now()

    async def list(
        self, project: str, *, status: Optional[SessionStatus] = None, role: Optional[str] = None, limit: int = 50
    ) -> List[AgentSession]:
        out = [s for s in self.by_id.values() if s.project == project]
        if status is not None:
            out = [s for s in out if s.status == SessionStatus(status)]
        if role is not None:
            out = [s for s in out if s.role == role]
        out.sort(key=lambda s: s.started_at, reverse=True)
        return out[:limit]


def _cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return 0.0 if na == 0 or nb == 0 else dot / (na * nb)


class _DecisionsRepo:
    def __init__(self) -> None:
        self.by_id: Dict[str, Decision] = {}

    async def next_decision_number(self, project: str) -> int:
        return 1 + max((d.decision_number for d in self.by_id.values() if d.project == project), default=0)

    async def create(self, decision: Decision) -> Decision:
        n = await self.next_decision_number(decision.project)
        stored = decision.model_copy(update={"decision_number": n, "id": f"{decision.project}-{n:04d}"})
        self.by_id[stored.id] = stored
        return stored

    async def get(self, decision_id: str) -> Optional[Decision]:
        return self.by_id.get(decision_id)

    async def semantic_search(
        self, project: str, embedding: List[float], *, limit: int = 5, threshold: float = 0.7
    ) -> List[DecisionSearchResult]:
        scored = [
            DecisionSearchResult(decision=d, similarity=_cosine(embedding, d.embedding))
            for d in self.by_id.values()
            if d.project == project and d.embedding
        ]
        scored = [r for r in scored if r.similarity >= threshold]
        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:limit]

    async def add_related(self, decision_id: str, related_id: str) -> None:
        d = self.by_id.get(decision_id)
        if d is not None and related_id not in d.related_decisions:
            d.related_decisions.append(related_id)


class _AuditRepo:
    def __init__(self) -> None:
        self.entries: List[AuditEntry] = []

    async def log(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    async def list(
        self,
        project: str,
        *,
        session_id: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        out = [e for e in self.entries if e.project == project]
        if session_id is not None:
            out = [e for e in out if e.session_id == session_id]
        if action is not None:
            out = [e for e in out if e.action == action]
        if since is not None:
            out = [e for e in out if e.timestamp >= since]
        return out[:limit]

    async def count_since(
        self, project: str, action: str, since: datetime, *, match: Optional[Dict[str, Any]] = None
    ) -> int:
        match = match or {}
        return sum(
            1
            for e in self.entries
            if e.project == project
            and e.action == action
            and e.timestamp >= since
            and all(e.details.get(k) == v for k, v in match.items())
        )

    def actions(self) -> List[str]:
        return [e.action for e in self.entries]


class _ThreadsRepo:
    def __init__(self) -> None:
        self.threads: Dict[str, ConversationThread] = {}
        self.messages: Dict[str, List[ConversationMessage]] = {}

    async def create(self, thread: ConversationThread) -> ConversationThread:
        self.threads[thread.id] = thread
        self.messages[thread.id] = []
        return thread

    async def get(self, thread_id: str) -> Optional[ConversationThread]:
        return self.threads.get(thread_id)

    async def find_active(self, project: str, participants: List[Participant]) -> Optional[ConversationThread]:
        key = participant_set_key(participants)
        for t in self.threads.values():
            if (
                t.project == project
                and t.status == ConversationStatus.active
                and participant_set_key(t.participants) == key
            ):
                return t
        return None

    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        self.messages[message.conversation_id].append(message)
        self.threads[message.conversation_id].updated_at = _now()
        return message

    async def get_messages(self, thread_id: str) -> List[ConversationMessage]:
        return list(self.messages.get(thread_id, []))

    async def update_status(
        self, thread_id: str, status: ConversationStatus, resolution: Optional[str] = None
    ) -> None:
        t = self.threads.get(thread_id)
        if t is not None:
            t.status = ConversationStatus(status)
            if status == ConversationStatus.resolved:
                t.resolution = resolution

    async def get_active_for_participant(self, project: str, participant: Participant) -> List[ConversationThread]:
        out = [
            t
            for t in self.threads.values()
            if t.project == project
            and t.status == ConversationStatus.active
            and any(p.key() == participant.key() for p in t.participants)
        ]
        out.sort(key=lambda t: t.updated_at, reverse=True)
        return out

    async def list_for_participant(
        self,
        project: str,
        participant: Participant,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 10,
    ) -> List[ConversationThread]:
        out = [
            t
            for t in self.threads.values()
            if t.project == project
            and (status is None or t.status == status)
            and any(p.key() == participant.key() for p in t.participants)
        ]
        out.sort(key=lambda t: t.updated_at, reverse=True)
        return out[:limit]

    async def get_recent(self, project: str, limit: int = 10) -> List[ConversationThread]:
        out = [t for t in self.threads.values() if t.project == project]
        out.sort(key=lambda t: t.updated_at, reverse=True)
        return out[:limit]

    async def mark_stale(self, project: str, older_than: datetime) -> int:
        n = 0
        for t in self.threads.values():
            if t.project == project and t.status == ConversationStatus.active and t.updated_at < older_than:
                t.status = ConversationStatus.stale
                n += 1
        return n


class _ChallengesRepo:
    def __init__(self) -> None:
        self.by_id: Dict[str, Challenge] = {}

    async def create(self, challenge: Challenge) -> Challenge:
        self.by_id[challenge.id] = challenge
        return challenge

    async def get(self, challenge_id: str) -> Optional[Challenge]:
        return self.by_id.get(challenge_id)

    async def list(self, project: str, status: Optional[str] = None) -> List[Challenge]:
        out = [c for c in self.by_id.values() if c.project == project]
        if status is not None:
            out = [c for c in out if c.status == ChallengeStatus(status)]
        return out

    async def respond(
        self, challenge_id: str, *, responded_by: str, response: str, outcome: str
    ) -> Optional[Challenge]:
        c = self.by_id.get(challenge_id)
        if c is None:
            return None
        c.responded_by = responded_by
        c.responded_at = _now()
        c.response = response
        c.outcome = outcome
        c.status = ChallengeStatus(outcome)
        return c


class _WikiDraftsRepo:
    def __init__(self) -> None:
        self.by_id: Dict[str, WikiDraft] = {}

    async def create(self, draft: WikiDraft) -> WikiDraft:
        self.by_id[draft.id] = draft
        return draft

    async def get(self, draft_id: str) -> Optional[WikiDraft]:
        return self.by_id.get(draft_id)

    async def get_pending(self, project: str) -> List[WikiDraft]:
        return [d for d in self.by_id.values() if d.project == project and d.status == WikiDraftStatus.pending]

    async def _review(
        self, draft_id: str, status: WikiDraftStatus, reviewed_by: str, feedback: Optional[str]
    ) -> Optional[WikiDraft]:
        d = self.by_id.get(draft_id)
        if d is None:
            return None
        d.status = status
        d.reviewed_by = reviewed_by
        d.reviewed_at = _now()
        d.feedback = feedback
        return d

    async def approve(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        return await self._review(draft_id, WikiDraftStatus.approved, reviewed_by, feedback)

    async def reject(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        return await self._review(draft_id, WikiDraftStatus.rejected, reviewed_by, feedback)


@dataclass
class FakeRepos:
    sessions: _SessionsRepo
    decisions: _DecisionsRepo
    audit: _AuditRepo
    threads: _ThreadsRepo
    challenges: _ChallengesRepo
    wiki_drafts: _WikiDraftsRepo


class _KeywordEmbeddings:
    """Deterministic embeddings: one dimension per vocabulary word."""

    VOCAB = ("merge", "label", "release", "security", "docs", "triage")

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [1.0 if w in lowered else 0.0 for w in self.VOCAB] + [0.1]


@pytest.fixture
def repos() -> FakeRepos:
    return FakeRepos(
        sessions=_SessionsRepo(),
        decisions=_DecisionsRepo(),
        audit=_AuditRepo(),
        threads=_ThreadsRepo(),
        challenges=_ChallengesRepo(),
        wiki_drafts=_WikiDraftsRepo(),
    )


@pytest.fixture
def embeddings() -> _KeywordEmbeddings:
    return _KeywordEmbeddings()


@pytest.fixture
def project() -> ProjectConfig:
    return ProjectConfig(
        id="acme",
        name="Acme",
        repository="acme/widgets",
        constitution="Maintainers decide by lazy consensus.",
        roles=[
            RoleDefinition(
                name="reception",
                purpose="Greet and triage",
                accepts_trust=[TrustLevel.anonymous, TrustLevel.contributor],
                tools=ToolPermissions(denied=["merge_pull_request"]),
            ),
            RoleDefinition(
                name="maintainer",
                purpose="Govern the project",
                accepts_trust=[TrustLevel.contributor, TrustLevel.authorized, TrustLevel.elevated],
                significant_actions=["merge_pull_request", "close_issue"],
                constraints=[
                    Constraint(
                        type="trust_level",
                        description="Merging needs write access",
                        parameters={"min_trust": "authorized"},
                        on_actions=["merge_pull_request"],
                    )
                ],
            ),
            RoleDefinition(
                name="engineer",
                purpose="Implement approved work",
                accepts_trust=[TrustLevel.authorized, TrustLevel.elevated],
            ),
        ],
    )


@pytest.fixture
def make_request():
    def _make(
        intent: str = "please triage this issue",
        *,
        trust: TrustLevel = TrustLevel.authorized,
        channel: Channel = Channel.github_webhook,
        identity: Optional[str] = "octocat",
        project: str = "acme",
        payload: Optional[Dict[str, Any]] = None,
    ) -> GovernanceRequest:
        return GovernanceRequest(
            trust=trust,
            source=RequestSource(channel=channel, identity=identity),
            project=project,
            intent=intent,
            payload=payload or {},
        )

    return _make
