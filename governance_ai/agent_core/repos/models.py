from __future__ import annotations

"""SQLAlchemy ORM models for governance persistence.

These ORM models define the SQL schema used by the SQL repository
implementation in ``governance_ai.agent_core.repos.sql``.

Design
------

The schema is optimized for auditability:

- Sessions store the originating request, status and the ordered tool-use
  log of one agent invocation.
- Decisions are immutable and numbered per project; the
  ``(project, decision_number)`` pair is unique.
- Audit entries form an append-only timeline.
- Conversation threads and their messages are stored separately so messages
  can be appended without rewriting the thread.

Structured fields use the generic ``JSON`` type so the same schema runs on
Postgres and SQLite. Table names are prefixed with ``gov_`` to avoid
collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class SessionRow(Base):
    """Row model for ``gov_sessions``."""

    __tablename__ = "gov_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    role: Mapped[str] = mapped_column(String(64))
    request: Mapped[Dict[str, Any]] = mapped_column(JSON)

    status: Mapped[str] = mapped_column(String(32))
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tool_uses: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    decisions_logged: Mapped[List[str]] = mapped_column(JSON, default=list)
    escalations: Mapped[List[str]] = mapped_column(JSON, default=list)


class DecisionRow(Base):
    """Row model for ``gov_decisions``.

    ``embedding`` is kept as a JSON array; similarity is computed in Python.
    """

    __tablename__ = "gov_decisions"
    __table_args__ = (UniqueConstraint("project", "decision_number", name="uq_gov_decisions_project_number"),)

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    decision_number: Mapped[int] = mapped_column(Integer)

    title: Mapped[str] = mapped_column(Text)
    date: Mapped[str] = mapped_column(String(16))
    status: Mapped[str] = mapped_column(String(32))
    decision_maker: Mapped[str] = mapped_column(String(128))

    decision: Mapped[str] = mapped_column(Text)
    reasoning: Mapped[str] = mapped_column(Text)
    considerations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uncertainties: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reversibility: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    would_change_if: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON, nullable=True)
    related_decisions: Mapped[List[str]] = mapped_column(JSON, default=list)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)


class AuditRow(Base):
    """Row model for ``gov_audit_log`` (append-only)."""

    __tablename__ = "gov_audit_log"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64))
    actor: Mapped[str] = mapped_column(String(128))
    trust_level: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    message: Mapped[str] = mapped_column(Text, default="")
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)


class ConversationThreadRow(Base):
    """Row model for ``gov_conversation_threads``.

    ``participant_key`` is the sorted, order-independent participant set and
    backs ``find_active`` lookups.
    """

    __tablename__ = "gov_conversation_threads"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    participants: Mapped[List[Dict[str, Any]]] = mapped_column(JSON)
    participant_key: Mapped[str] = mapped_column(String(512), index=True)
    status: Mapped[str] = mapped_column(String(16))
    topic: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ConversationMessageRow(Base):
    """Row model for ``gov_conversation_messages``."""

    __tablename__ = "gov_conversation_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(64), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    from_participant: Mapped[Dict[str, Any]] = mapped_column(JSON)
    content: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ChallengeRow(Base):
    """Row model for ``gov_challenges``."""

    __tablename__ = "gov_challenges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    decision_id: Mapped[str] = mapped_column(String(160), index=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    submitted_by: Mapped[str] = mapped_column(String(128))
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16))
    argument: Mapped[str] = mapped_column(Text)
    evidence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    responded_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class WikiDraftRow(Base):
    """Row model for ``gov_wiki_drafts``."""

    __tablename__ = "gov_wiki_drafts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project: Mapped[str] = mapped_column(String(128), index=True)
    type: Mapped[str] = mapped_column(String(16))
    page_path: Mapped[str] = mapped_column(String(512))
    proposed_content: Mapped[str] = mapped_column(Text)
    original_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proposed_by: Mapped[str] = mapped_column(String(128))
    proposed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    edit_summary: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(16))
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
