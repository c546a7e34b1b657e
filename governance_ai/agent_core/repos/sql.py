from __future__ import annotations

"""SQLAlchemy async repository implementations.

This module provides a SQL-backed persistence implementation for the
repository interfaces defined in ``governance_ai.agent_core.repos.interfaces``.

Usage
-----

Typical wiring (tests or application setup):

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (for tests/dev).
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. Decision numbering reads the current maximum and inserts in the same
transaction; the unique ``(project, decision_number)`` constraint turns a
concurrent writer into an ``IntegrityError`` which is retried with a fresh
number, so numbers are never reused.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..schemas.domain import (
    AgentSession,
    AuditEntry,
    Challenge,
    ChallengeStatus,
    ConversationMessage,
    ConversationStatus,
    ConversationThread,
    Decision,
    DecisionSearchResult,
    GovernanceRequest,
    Participant,
    SessionStatus,
    ToolUse,
    WikiDraft,
    WikiDraftStatus,
    participant_set_key,
)
from .interfaces import (
    AuditRepository,
    ChallengeRepository,
    ConversationThreadRepository,
    DecisionRepository,
    SessionRepository,
    WikiDraftRepository,
)
from .models import (
    AuditRow,
    Base,
    ChallengeRow,
    ConversationMessageRow,
    ConversationThreadRow,
    DecisionRow,
    SessionRow,
    WikiDraftRow,
)

logger = logging.getLogger(__name__)

_DECISION_INSERT_ATTEMPTS = 5


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``. SQLite URLs are passed through unchanged.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata.

    This is mainly intended for tests and local development.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is empty or zero."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


def decision_id_for(project: str, number: int) -> str:
    return f"{project}-{number:04d}"


def _participant_key_contains(participant: Participant):
    # participant_key is the sorted member keys joined by "|"
    key = re.sub(r"([\\%_])", r"\\\1", participant.key())
    column = ConversationThreadRow.participant_key
    return or_(
        column == participant.key(),
        column.like(f"{key}|%", escape="\\"),
        column.like(f"%|{key}", escape="\\"),
        column.like(f"%|{key}|%", escape="\\"),
    )


def _session_from_row(row: SessionRow) -> AgentSession:
    return AgentSession(
        id=row.id,
        project=row.project,
        role=row.role,
        request=GovernanceRequest.model_validate(row.request),
        started_at=_as_utc(row.started_at),
        ended_at=_as_utc(row.ended_at),
        status=SessionStatus(row.status),
        tool_uses=[ToolUse.model_validate(t) for t in row.tool_uses or []],
        decisions_logged=list(row.decisions_logged or []),
        escalations=list(row.escalations or []),
    )


def _decision_from_row(row: DecisionRow) -> Decision:
    return Decision(
        id=row.id,
        decision_number=row.decision_number,
        title=row.title,
        date=row.date,
        status=row.status,
        decision_maker=row.decision_maker,
        project=row.project,
        decision=row.decision,
        reasoning=row.reasoning,
        considerations=row.considerations,
        uncertainties=row.uncertainties,
        reversibility=row.reversibility,
        would_change_if=row.would_change_if,
        embedding=list(row.embedding) if row.embedding is not None else None,
        related_decisions=list(row.related_decisions or []),
        tags=list(row.tags or []),
    )


def _audit_from_row(row: AuditRow) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        timestamp=_as_utc(row.timestamp),
        project=row.project,
        session_id=row.session_id,
        action=row.action,
        actor=row.actor,
        trust_level=row.trust_level,
        message=row.message or "",
        details=dict(row.details or {}),
    )


def _thread_from_row(row: ConversationThreadRow) -> ConversationThread:
    return ConversationThread(
        id=row.id,
        project=row.project,
        participants=[Participant.model_validate(p) for p in row.participants],
        status=ConversationStatus(row.status),
        topic=row.topic,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
        resolution=row.resolution,
    )


def _message_from_row(row: ConversationMessageRow) -> ConversationMessage:
    return ConversationMessage(
        id=row.id,
        conversation_id=row.conversation_id,
        from_participant=Participant.model_validate(row.from_participant),
        content=row.content,
        timestamp=_as_utc(row.timestamp),
    )


def _challenge_from_row(row: ChallengeRow) -> Challenge:
    return Challenge(
        id=row.id,
        decision_id=row.decision_id,
        project=row.project,
        submitted_by=row.submitted_by,
        submitted_at=_as_utc(row.submitted_at),
        status=ChallengeStatus(row.status),
        argument=row.argument,
        evidence=row.evidence,
        responded_by=row.responded_by,
        responded_at=_as_utc(row.responded_at),
        response=row.response,
        outcome=row.outcome,
    )


def _draft_from_row(row: WikiDraftRow) -> WikiDraft:
    return WikiDraft(
        id=row.id,
        project=row.project,
        type=row.type,
        page_path=row.page_path,
        proposed_content=row.proposed_content,
        original_content=row.original_content,
        proposed_by=row.proposed_by,
        proposed_at=_as_utc(row.proposed_at),
        edit_summary=row.edit_summary or "",
        status=WikiDraftStatus(row.status),
        reviewed_by=row.reviewed_by,
        reviewed_at=_as_utc(row.reviewed_at),
        feedback=row.feedback,
    )


@dataclass(frozen=True)
class SqlSessionRepository(SessionRepository):
    """SQL implementation of ``SessionRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, session: AgentSession) -> AgentSession:
        """
        Persist a new session record.

        Args:
            session: The session domain object to insert.
        """
        async with self.session_factory() as s:
            s.add(
                SessionRow(
                    id=session.id,
                    project=session.project,
                    role=session.role,
                    request=session.request.model_dump(mode="json"),
                    status=SessionStatus(session.status).value,
                    started_at=session.started_at,
                    ended_at=session.ended_at,
                    tool_uses=[t.model_dump(mode="json") for t in session.tool_uses],
                    decisions_logged=list(session.decisions_logged),
                    escalations=list(session.escalations),
                )
            )
            await s.commit()
        return session

    async def get(self, session_id: str) -> Optional[AgentSession]:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                return None
            return _session_from_row(row)

    async def append_tool_use(self, session_id: str, tool_use: ToolUse) -> None:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                return
            # Reassign so the JSON column is flagged dirty.
            row.tool_uses = [*(row.tool_uses or []), tool_use.model_dump(mode="json")]
            await s.commit()

    async def add_decision(self, session_id: str, decision_id: str) -> None:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                return
            row.decisions_logged = [*(row.decisions_logged or []), decision_id]
            await s.commit()

    async def add_escalation(self, session_id: str, escalation: str) -> None:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                return
            row.escalations = [*(row.escalations or []), escalation]
            await s.commit()

    async def complete(self, session_id: str, *, status: SessionStatus, ended_at: Optional[datetime] = None) -> None:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            if row is None:
                return
            row.status = SessionStatus(status).value
            row.ended_at = ended_at or _utc_now()
            await s.commit()

    async def list(
        self, project: str, *, status: Optional[SessionStatus] = None, role: Optional[str] = None, limit: int = 50
    ) -> List[AgentSession]:
        async with self.session_factory() as s:
            stmt = select(SessionRow).where(SessionRow.project == project)
            if status is not None:
                stmt = stmt.where(SessionRow.status == SessionStatus(status).value)
            if role:
                stmt = stmt.where(SessionRow.role == role)
            stmt = stmt.order_by(SessionRow.started_at.desc()).limit(limit)
            result = await s.execute(stmt)
            return [_session_from_row(row) for row in result.scalars().all()]


@dataclass(frozen=True)
class SqlDecisionRepository(DecisionRepository):
    """SQL implementation of ``DecisionRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def next_decision_number(self, project: str) -> int:
        async with self.session_factory() as s:
            return await self._next_number(s, project)

    @staticmethod
    async def _next_number(s: AsyncSession, project: str) -> int:
        result = await s.execute(
            select(func.max(DecisionRow.decision_number)).where(DecisionRow.project == project)
        )
        current = result.scalar_one_or_none()
        return int(current or 0) + 1

    async def create(self, decision: Decision) -> Decision:
        """
        Insert a decision under the next free number for its project.

        Raises:
            IntegrityError: If a free number could not be claimed after
                repeated concurrent conflicts.
        """
        for attempt in range(1, _DECISION_INSERT_ATTEMPTS + 1):
            async with self.session_factory() as s:
                number = await self._next_number(s, decision.project)
                stored = decision.model_copy(
                    update={"decision_number": number, "id": decision_id_for(decision.project, number)}
                )
                s.add(
                    DecisionRow(
                        id=stored.id,
                        project=stored.project,
                        decision_number=stored.decision_number,
                        title=stored.title,
                        date=stored.date,
                        status=str(getattr(stored.status, "value", stored.status)),
                        decision_maker=stored.decision_maker,
                        decision=stored.decision,
                        reasoning=stored.reasoning,
                        considerations=stored.considerations,
                        uncertainties=stored.uncertainties,
                        reversibility=stored.reversibility,
                        would_change_if=stored.would_change_if,
                        embedding=stored.embedding,
                        related_decisions=list(stored.related_decisions),
                        tags=list(stored.tags),
                    )
                )
                try:
                    await s.commit()
                except IntegrityError:
                    await s.rollback()
                    if attempt == _DECISION_INSERT_ATTEMPTS:
                        raise
                    logger.debug(f"Decision number {number} for '{decision.project}' taken, retrying")
                    continue
                return stored
        raise RuntimeError("unreachable")

    async def get(self, decision_id: str) -> Optional[Decision]:
        async with self.session_factory() as s:
            row = await s.get(DecisionRow, decision_id)
            if row is None:
                return None
            return _decision_from_row(row)

    async def semantic_search(
        self, project: str, embedding: List[float], *, limit: int = 5, threshold: float = 0.7
    ) -> List[DecisionSearchResult]:
        async with self.session_factory() as s:
            result = await s.execute(
                select(DecisionRow).where(DecisionRow.project == project, DecisionRow.embedding.is_not(None))
            )
            rows = result.scalars().all()

        scored: List[DecisionSearchResult] = []
        for row in rows:
            similarity = cosine_similarity(list(embedding), list(row.embedding or []))
            if similarity >= threshold:
                scored.append(DecisionSearchResult(decision=_decision_from_row(row), similarity=similarity))
        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:limit]

    async def add_related(self, decision_id: str, related_id: str) -> None:
        async with self.session_factory() as s:
            row = await s.get(DecisionRow, decision_id)
            if row is None:
                return
            if related_id not in (row.related_decisions or []):
                row.related_decisions = [*(row.related_decisions or []), related_id]
            await s.commit()


@dataclass(frozen=True)
class SqlAuditRepository(AuditRepository):
    """SQL implementation of ``AuditRepository`` (append-only)."""

    session_factory: async_sessionmaker[AsyncSession]

    async def log(self, entry: AuditEntry) -> None:
        """
        Append a new audit entry.

        Args:
            entry: The audit domain object.
        """
        async with self.session_factory() as s:
            s.add(
                AuditRow(
                    id=entry.id,
                    timestamp=entry.timestamp,
                    project=entry.project,
                    session_id=entry.session_id,
                    action=entry.action,
                    actor=entry.actor,
                    trust_level=str(getattr(entry.trust_level, "value", entry.trust_level))
                    if entry.trust_level is not None
                    else None,
                    message=entry.message,
                    details=entry.details,
                )
            )
            await s.commit()

    async def list(
        self,
        project: str,
        *,
        session_id: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        async with self.session_factory() as s:
            stmt = select(AuditRow).where(AuditRow.project == project)
            if session_id:
                stmt = stmt.where(AuditRow.session_id == session_id)
            if action:
                stmt = stmt.where(AuditRow.action == action)
            if since is not None:
                stmt = stmt.where(AuditRow.timestamp >= since)
            stmt = stmt.order_by(AuditRow.timestamp.asc()).limit(limit)
            result = await s.execute(stmt)
            return [_audit_from_row(row) for row in result.scalars().all()]

    async def count_since(
        self, project: str, action: str, since: datetime, *, match: Optional[Dict[str, Any]] = None
    ) -> int:
        async with self.session_factory() as s:
            stmt = select(AuditRow.details).where(
                AuditRow.project == project,
                AuditRow.action == action,
                AuditRow.timestamp >= since,
            )
            result = await s.execute(stmt)
            details_list = result.scalars().all()
        if not match:
            return len(details_list)
        return sum(1 for d in details_list if all((d or {}).get(k) == v for k, v in match.items()))


@dataclass(frozen=True)
class SqlConversationThreadRepository(ConversationThreadRepository):
    """SQL implementation of ``ConversationThreadRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, thread: ConversationThread) -> ConversationThread:
        async with self.session_factory() as s:
            s.add(
                ConversationThreadRow(
                    id=thread.id,
                    project=thread.project,
                    participants=[p.model_dump(mode="json") for p in thread.participants],
                    participant_key=participant_set_key(thread.participants),
                    status=ConversationStatus(thread.status).value,
                    topic=thread.topic,
                    resolution=thread.resolution,
                    created_at=thread.created_at,
                    updated_at=thread.updated_at,
                )
            )
            await s.commit()
        return thread

    async def get(self, thread_id: str) -> Optional[ConversationThread]:
        async with self.session_factory() as s:
            row = await s.get(ConversationThreadRow, thread_id)
            if row is None:
                return None
            return _thread_from_row(row)

    async def find_active(self, project: str, participants: List[Participant]) -> Optional[ConversationThread]:
        async with self.session_factory() as s:
            stmt = (
                select(ConversationThreadRow)
                .where(
                    ConversationThreadRow.project == project,
                    ConversationThreadRow.participant_key == participant_set_key(participants),
                    ConversationThreadRow.status == ConversationStatus.active.value,
                )
                .order_by(ConversationThreadRow.updated_at.desc())
                .limit(1)
            )
            result = await s.execute(stmt)
            row = result.scalars().first()
            return _thread_from_row(row) if row is not None else None

    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        async with self.session_factory() as s:
            result = await s.execute(
                select(func.count(ConversationMessageRow.id)).where(
                    ConversationMessageRow.conversation_id == message.conversation_id
                )
            )
            seq = int(result.scalar_one() or 0)
            s.add(
                ConversationMessageRow(
                    id=message.id,
                    conversation_id=message.conversation_id,
                    seq=seq,
                    from_participant=message.from_participant.model_dump(mode="json"),
                    content=message.content,
                    timestamp=message.timestamp,
                )
            )
            thread = await s.get(ConversationThreadRow, message.conversation_id)
            if thread is not None:
                thread.updated_at = message.timestamp
            await s.commit()
        return message

    async def get_messages(self, thread_id: str) -> List[ConversationMessage]:
        async with self.session_factory() as s:
            stmt = (
                select(ConversationMessageRow)
                .where(ConversationMessageRow.conversation_id == thread_id)
                .order_by(ConversationMessageRow.seq.asc())
            )
            result = await s.execute(stmt)
            return [_message_from_row(row) for row in result.scalars().all()]

    async def update_status(
        self, thread_id: str, status: ConversationStatus, resolution: Optional[str] = None
    ) -> None:
        async with self.session_factory() as s:
            row = await s.get(ConversationThreadRow, thread_id)
            if row is None:
                return
            row.status = ConversationStatus(status).value
            if status == ConversationStatus.resolved:
                row.resolution = resolution
            row.updated_at = _utc_now()
            await s.commit()

    async def get_active_for_participant(self, project: str, participant: Participant) -> List[ConversationThread]:
        async with self.session_factory() as s:
            stmt = (
                select(ConversationThreadRow)
                .where(
                    ConversationThreadRow.project == project,
                    ConversationThreadRow.status == ConversationStatus.active.value,
                )
                .order_by(ConversationThreadRow.updated_at.desc())
            )
            result = await s.execute(stmt)
            threads = [_thread_from_row(row) for row in result.scalars().all()]
        key = participant.key()
        return [t for t in threads if any(p.key() == key for p in t.participants)]

    async def list_for_participant(
        self,
        project: str,
        participant: Participant,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 10,
    ) -> List[ConversationThread]:
        async with self.session_factory() as s:
            stmt = select(ConversationThreadRow).where(
                ConversationThreadRow.project == project,
                _participant_key_contains(participant),
            )
            if status is not None:
                stmt = stmt.where(ConversationThreadRow.status == ConversationStatus(status).value)
            stmt = stmt.order_by(ConversationThreadRow.updated_at.desc()).limit(limit)
            result = await s.execute(stmt)
            return [_thread_from_row(row) for row in result.scalars().all()]

    async def get_recent(self, project: str, limit: int = 10) -> List[ConversationThread]:
        async with self.session_factory() as s:
            stmt = (
                select(ConversationThreadRow)
                .where(ConversationThreadRow.project == project)
                .order_by(ConversationThreadRow.updated_at.desc())
                .limit(limit)
            )
            result = await s.execute(stmt)
            return [_thread_from_row(row) for row in result.scalars().all()]

    async def mark_stale(self, project: str, older_than: datetime) -> int:
        async with self.session_factory() as s:
            stmt = select(ConversationThreadRow).where(
                ConversationThreadRow.project == project,
                ConversationThreadRow.status == ConversationStatus.active.value,
                ConversationThreadRow.updated_at < older_than,
            )
            result = await s.execute(stmt)
            rows = result.scalars().all()
            for row in rows:
                row.status = ConversationStatus.stale.value
            await s.commit()
            return len(rows)


@dataclass(frozen=True)
class SqlChallengeRepository(ChallengeRepository):
    """SQL implementation of ``ChallengeRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, challenge: Challenge) -> Challenge:
        async with self.session_factory() as s:
            s.add(
                ChallengeRow(
                    id=challenge.id,
                    decision_id=challenge.decision_id,
                    project=challenge.project,
                    submitted_by=challenge.submitted_by,
                    submitted_at=challenge.submitted_at,
                    status=ChallengeStatus(challenge.status).value,
                    argument=challenge.argument,
                    evidence=challenge.evidence,
                )
            )
            await s.commit()
        return challenge

    async def get(self, challenge_id: str) -> Optional[Challenge]:
        async with self.session_factory() as s:
            row = await s.get(ChallengeRow, challenge_id)
            return _challenge_from_row(row) if row is not None else None

    async def list(self, project: str, status: Optional[str] = None) -> List[Challenge]:
        async with self.session_factory() as s:
            stmt = select(ChallengeRow).where(ChallengeRow.project == project)
            if status:
                stmt = stmt.where(ChallengeRow.status == status)
            stmt = stmt.order_by(ChallengeRow.submitted_at.desc())
            result = await s.execute(stmt)
            return [_challenge_from_row(row) for row in result.scalars().all()]

    async def respond(
        self, challenge_id: str, *, responded_by: str, response: str, outcome: str
    ) -> Optional[Challenge]:
        async with self.session_factory() as s:
            row = await s.get(ChallengeRow, challenge_id)
            if row is None:
                return None
            row.responded_by = responded_by
            row.responded_at = _utc_now()
            row.response = response
            row.outcome = outcome
            row.status = ChallengeStatus(outcome).value
            await s.commit()
            return _challenge_from_row(row)


@dataclass(frozen=True)
class SqlWikiDraftRepository(WikiDraftRepository):
    """SQL implementation of ``WikiDraftRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, draft: WikiDraft) -> WikiDraft:
        async with self.session_factory() as s:
            s.add(
                WikiDraftRow(
                    id=draft.id,
                    project=draft.project,
                    type=str(getattr(draft.type, "value", draft.type)),
                    page_path=draft.page_path,
                    proposed_content=draft.proposed_content,
                    original_content=draft.original_content,
                    proposed_by=draft.proposed_by,
                    proposed_at=draft.proposed_at,
                    edit_summary=draft.edit_summary,
                    status=WikiDraftStatus(draft.status).value,
                )
            )
            await s.commit()
        return draft

    async def get(self, draft_id: str) -> Optional[WikiDraft]:
        async with self.session_factory() as s:
            row = await s.get(WikiDraftRow, draft_id)
            return _draft_from_row(row) if row is not None else None

    async def get_pending(self, project: str) -> List[WikiDraft]:
        async with self.session_factory() as s:
            stmt = (
                select(WikiDraftRow)
                .where(WikiDraftRow.project == project, WikiDraftRow.status == WikiDraftStatus.pending.value)
                .order_by(WikiDraftRow.proposed_at.asc())
            )
            result = await s.execute(stmt)
            return [_draft_from_row(row) for row in result.scalars().all()]

    async def _review(
        self, draft_id: str, status: WikiDraftStatus, reviewed_by: str, feedback: Optional[str]
    ) -> Optional[WikiDraft]:
        async with self.session_factory() as s:
            row = await s.get(WikiDraftRow, draft_id)
            if row is None:
                return None
            row.status = status.value
            row.reviewed_by = reviewed_by
            row.reviewed_at = _utc_now()
            row.feedback = feedback
            await s.commit()
            return _draft_from_row(row)

    async def approve(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        return await self._review(draft_id, WikiDraftStatus.approved, reviewed_by, feedback)

    async def reject(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        return await self._review(draft_id, WikiDraftStatus.rejected, reviewed_by, feedback)


@dataclass(frozen=True)
class SqlRepoBundle:
    """Convenience bundle of all SQL repositories for dependency injection."""

    sessions: SqlSessionRepository
    decisions: SqlDecisionRepository
    audit: SqlAuditRepository
    threads: SqlConversationThreadRepository
    challenges: SqlChallengeRepository
    wiki_drafts: SqlWikiDraftRepository


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """Build a ``SqlRepoBundle`` from a session factory."""
    return SqlRepoBundle(
        sessions=SqlSessionRepository(session_factory=session_factory),
        decisions=SqlDecisionRepository(session_factory=session_factory),
        audit=SqlAuditRepository(session_factory=session_factory),
        threads=SqlConversationThreadRepository(session_factory=session_factory),
        challenges=SqlChallengeRepository(session_factory=session_factory),
        wiki_drafts=SqlWikiDraftRepository(session_factory=session_factory),
    )
