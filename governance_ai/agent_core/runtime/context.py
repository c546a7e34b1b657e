from __future__ import annotations

"""System context assembly for one agent invocation."""

import logging
from typing import List, Optional

from ..embeddings import EmbeddingProvider
from ..repos.interfaces import ConversationThreadRepository, DecisionRepository
from ..schemas.config import ConstraintEnforcement, ProjectConfig, RoleDefinition
from ..schemas.domain import GovernanceRequest, Participant, ParticipantType
from ..tools.wiki import LANDING_PAGE, WikiStore

logger = logging.getLogger(__name__)

RELEVANT_DECISIONS_LIMIT = 5

DEFAULT_PRINCIPLES = (
    "Act only within your role. Prefer reversible actions. Record the reasoning behind every "
    "significant action as a decision so it can be reviewed and challenged. When a request is "
    "outside your authority, escalate instead of guessing."
)


class SystemContextBuilder:
    """
    Build the system prompt for an agent.

    Sections, in order: foundational principles, project constitution, wiki
    landing page, relevant past decisions, the role, open conversations, the
    current request, then any extra context supplied by the caller (the thread
    history for a nested ``converse`` call).

    Decision lookup needs an embedding provider; without one, or when
    embedding fails, the section is left out.
    """

    def __init__(
        self,
        *,
        decisions: DecisionRepository,
        threads: Optional[ConversationThreadRepository] = None,
        embeddings: Optional[EmbeddingProvider] = None,
        wiki: Optional[WikiStore] = None,
        principles: str = DEFAULT_PRINCIPLES,
    ) -> None:
        self._decisions = decisions
        self._threads = threads
        self._embeddings = embeddings
        self._wiki = wiki
        self._principles = principles

    async def build(
        self,
        project: ProjectConfig,
        role: RoleDefinition,
        request: GovernanceRequest,
        extra_context: Optional[str] = None,
    ) -> str:
        sections: List[str] = []
        sections.append("# Foundational Principles\n\n" + self._principles)
        if project.constitution:
            sections.append("# Project Constitution\n\n" + project.constitution)

        wiki = await self._wiki_section(project)
        if wiki:
            sections.append(wiki)

        decisions = await self._decisions_section(project, request)
        if decisions:
            sections.append(decisions)

        sections.append(self._role_section(role))

        conversations = await self._conversations_section(project, role)
        if conversations:
            sections.append(conversations)

        sections.append(self._request_section(request))
        if extra_context:
            sections.append(extra_context)
        return "\n\n".join(sections)

    async def _wiki_section(self, project: ProjectConfig) -> Optional[str]:
        if self._wiki is None:
            return None
        page = await self._wiki.get_page(project.id, LANDING_PAGE)
        if page is None:
            return None
        return "# Project Wiki\n\n" + page.content.strip()

    async def _decisions_section(self, project: ProjectConfig, request: GovernanceRequest) -> Optional[str]:
        if self._embeddings is None or not request.intent:
            return None
        try:
            vector = await self._embeddings.embed(request.intent)
        except Exception as e:
            logger.warning(f"Skipping past decisions for request {request.id}: embedding failed: {e}")
            return None
        results = await self._decisions.semantic_search(project.id, vector, limit=RELEVANT_DECISIONS_LIMIT)
        if not results:
            return None
        lines = [
            "# Relevant Past Decisions",
            "",
            "These past decisions may provide relevant precedent for your current task:",
        ]
        for r in results:
            d = r.decision
            lines += [
                "",
                f"## Decision #{d.decision_number}: {d.title}",
                f"**Date:** {d.date}",
                f"**Decision:** {d.decision}",
                f"**Reasoning:** {d.reasoning}",
            ]
        return "\n".join(lines)

    @staticmethod
    def _role_section(role: RoleDefinition) -> str:
        lines = ["# Your Role", "", f"**Role:** {role.name}", f"**Purpose:** {role.purpose}"]
        if role.instructions:
            lines += ["", "## Instructions", "", role.instructions]
        if role.constraints:
            lines += ["", "## Constraints", ""]
            for c in role.constraints:
                hard = ConstraintEnforcement(c.enforcement) is ConstraintEnforcement.hard
                marker = "(HARD - will be blocked)" if hard else "(SOFT - please follow)"
                lines.append(f"- **{c.type}:** {c.description} {marker}")
        return "\n".join(lines)

    async def _conversations_section(self, project: ProjectConfig, role: RoleDefinition) -> Optional[str]:
        if self._threads is None:
            return None
        me = Participant(type=ParticipantType.role, id=role.name)
        threads = await self._threads.get_active_for_participant(project.id, me)
        if not threads:
            return None
        lines = ["# Open Conversations", ""]
        for t in threads:
            others = ", ".join(p.id for p in t.participants if p.key() != me.key())
            topic = f" about {t.topic}" if t.topic else ""
            lines.append(f"- `{t.id}` with {others}{topic} (updated {t.updated_at.isoformat()})")
        lines += ["", "Use `converse` with `conversation_id` to continue one of these."]
        return "\n".join(lines)

    @staticmethod
    def _request_section(request: GovernanceRequest) -> str:
        lines = [
            "# Current Request",
            "",
            f"**Trust Level:** {request.trust.value}",
            f"**Source:** {request.source.channel.value}",
        ]
        if request.source.identity:
            lines.append(f"**Identity:** {request.source.identity}")
        lines.append(f"**Intent:** {request.intent}")
        return "\n".join(lines)
