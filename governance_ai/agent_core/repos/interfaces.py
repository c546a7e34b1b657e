from __future__ import annotations

"""Repository interface contracts.

The engine depends on these Protocols instead of concrete persistence
implementations.

Contract guidelines
-------------------

- All methods are async.
- Repository implementations should be safe to call from the engine without
  leaking SQLAlchemy sessions/transactions.
- Updates addressed at an unknown id are a no-op unless documented otherwise.
- The audit repository is append-only; decisions are immutable apart from
  related-decision links.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..schemas.domain import (
    AgentSession,
    AuditEntry,
    Challenge,
    ConversationMessage,
    ConversationStatus,
    ConversationThread,
    Decision,
    DecisionSearchResult,
    Participant,
    SessionStatus,
    ToolUse,
    WikiDraft,
)


class SessionRepository(Protocol):
    """Persist the lifecycle of an agent session."""

    async def create(self, session: AgentSession) -> AgentSession:
        """
        Persist a new session.

        Args:
            session: The initial session state.

        Returns:
            The stored session.
        """
        ...

    async def get(self, session_id: str) -> Optional[AgentSession]:
        ...

    async def append_tool_use(self, session_id: str, tool_use: ToolUse) -> None:
        """Append to the ordered tool-use log."""
        ...

    async def add_decision(self, session_id: str, decision_id: str) -> None:
        """Record a logged decision. The decision list only grows."""
        ...

    async def add_escalation(self, session_id: str, escalation: str) -> None:
        ...

    async def complete(self, session_id: str, *, status: SessionStatus, ended_at: Optional[datetime] = None) -> None:
        """
        Finalize a session.

        Args:
            session_id: The session to finalize.
            status: Terminal status (completed/failed/blocked).
            ended_at: Completion time; defaults to now.
        """
        ...

    async def list(
        self, project: str, *, status: Optional[SessionStatus] = None, role: Optional[str] = None, limit: int = 50
    ) -> List[AgentSession]:
        """List sessions for a project, newest first."""
        ...


class DecisionRepository(Protocol):
    """Persist and search logged decisions."""

    async def next_decision_number(self, project: str) -> int:
        """Return the number the next decision in ``project`` would receive."""
        ...

    async def create(self, decision: Decision) -> Decision:
        """
        Persist a decision under the next sequential number for its project.

        The repository assigns ``decision_number`` and ``id``
        (``{project}-{number:04d}``); numbers are never reused.

        Returns:
            The stored decision with number and id filled in.
        """
        ...

    async def get(self, decision_id: str) -> Optional[Decision]:
        ...

    async def semantic_search(
        self, project: str, embedding: List[float], *, limit: int = 5, threshold: float = 0.7
    ) -> List[DecisionSearchResult]:
        """
        Return the most similar decisions by cosine similarity.

        Args:
            project: Project to search.
            embedding: Query vector.
            limit: Maximum number of results.
            threshold: Minimum similarity to include.
        """
        ...

    async def add_related(self, decision_id: str, related_id: str) -> None:
        ...


class AuditRepository(Protocol):
    """Append-only audit trail."""

    async def log(self, entry: AuditEntry) -> None:
        ...

    async def list(
        self,
        project: str,
        *,
        session_id: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        """List audit entries, oldest first."""
        ...

    async def count_since(
        self, project: str, action: str, since: datetime, *, match: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Count entries of ``action`` at or after ``since``.

        Args:
            match: Optional key/value pairs that must all be present in ``details``.
        """
        ...


class ConversationThreadRepository(Protocol):
    """Persist conversation threads and their messages."""

    async def create(self, thread: ConversationThread) -> ConversationThread:
        ...

    async def get(self, thread_id: str) -> Optional[ConversationThread]:
        ...

    async def find_active(self, project: str, participants: List[Participant]) -> Optional[ConversationThread]:
        """Return the active thread with exactly this participant set, in any order."""
        ...

    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        """Append a message and bump the thread's ``updated_at``."""
        ...

    async def get_messages(self, thread_id: str) -> List[ConversationMessage]:
        """Messages in insertion order."""
        ...

    async def update_status(
        self, thread_id: str, status: ConversationStatus, resolution: Optional[str] = None
    ) -> None:
        ...

    async def get_active_for_participant(self, project: str, participant: Participant) -> List[ConversationThread]:
        """Active threads that include ``participant``, most recently updated first."""
        ...

    async def list_for_participant(
        self,
        project: str,
        participant: Participant,
        *,
        status: Optional[ConversationStatus] = None,
        limit: int = 10,
    ) -> List[ConversationThread]:
        """Threads that include ``participant`` in any status (or only ``status``), most recently updated first."""
        ...

    async def get_recent(self, project: str, limit: int = 10) -> List[ConversationThread]:
        ...

    async def mark_stale(self, project: str, older_than: datetime) -> int:
        """Mark active threads not updated since ``older_than`` as stale; returns the count."""
        ...


class ChallengeRepository(Protocol):
    """Persist challenges raised against decisions."""

    async def create(self, challenge: Challenge) -> Challenge:
        ...

    async def get(self, challenge_id: str) -> Optional[Challenge]:
        ...

    async def list(self, project: str, status: Optional[str] = None) -> List[Challenge]:
        ...

    async def respond(
        self, challenge_id: str, *, responded_by: str, response: str, outcome: str
    ) -> Optional[Challenge]:
        """Record a response; ``outcome`` becomes the challenge status."""
        ...


class WikiDraftRepository(Protocol):
    """Persist proposed wiki changes awaiting review."""

    async def create(self, draft: WikiDraft) -> WikiDraft:
        ...

    async def get(self, draft_id: str) -> Optional[WikiDraft]:
        ...

    async def get_pending(self, project: str) -> List[WikiDraft]:
        ...

    async def approve(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        ...

    async def reject(self, draft_id: str, *, reviewed_by: str, feedback: Optional[str] = None) -> Optional[WikiDraft]:
        ...
