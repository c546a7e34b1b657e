from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..embeddings import EmbeddingProvider
from ..repos.interfaces import DecisionRepository
from ..schemas.domain import Decision
from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7

LOG_DECISION_TOOL = "log_decision"


@dataclass(frozen=True)
class DecisionLogTools(BaseToolHandlerSet):
    """
    Search, read and record governance decisions.

    ``search_decisions`` embeds the query and returns past decisions above a
    fixed similarity threshold, so agents can cite precedent. ``log_decision``
    records a new numbered decision; the invoker attaches the returned id to
    the running session.
    """

    decisions: DecisionRepository
    embeddings: Optional[EmbeddingProvider] = None
    name: str = "decision-log"

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                name="search_decisions",
                description=(
                    "Search for decisions semantically similar to a query. "
                    "Returns relevant past decisions that may provide precedent."
                ),
                input_schema=schema(
                    {
                        "project_id": {"type": "string", "description": "Project ID to search within"},
                        "query": {"type": "string", "description": "Search query describing what you are looking for"},
                        "limit": {"type": "number", "description": "Maximum number of results (default: 5)", "default": 5},
                    },
                    ["project_id", "query"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="get_decision",
                description="Get a specific decision by ID",
                input_schema=schema({"decision_id": {"type": "string", "description": "Decision ID"}}, ["decision_id"]),
                server=self.name,
            ),
            ToolSpec(
                name=LOG_DECISION_TOOL,
                description=(
                    "Log a new governance decision. Should be used for all significant actions "
                    "that require documented reasoning."
                ),
                input_schema=schema(
                    {
                        "project_id": {"type": "string", "description": "Project ID"},
                        "title": {"type": "string", "description": "Brief title of the decision"},
                        "decision": {"type": "string", "description": "What was decided"},
                        "reasoning": {"type": "string", "description": "Why this decision was made"},
                        "considerations": {"type": "string", "description": "What factors were considered (optional)"},
                        "uncertainties": {"type": "string", "description": "What uncertainties remain (optional)"},
                        "reversibility": {"type": "string", "description": "How easily this can be reversed (optional)"},
                        "would_change_if": {
                            "type": "string",
                            "description": "What conditions would lead to changing this decision (optional)",
                        },
                        "decision_maker": {"type": "string", "description": "Who made this decision"},
                    },
                    ["project_id", "title", "decision", "reasoning", "decision_maker"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "search_decisions": self.search_decisions,
            "get_decision": self.get_decision,
            LOG_DECISION_TOOL: self.log_decision,
        }

    async def _embed(self, text: str) -> Optional[List[float]]:
        if self.embeddings is None:
            return None
        return await self.embeddings.embed(text)

    async def search_decisions(self, args: Dict[str, Any]) -> Dict[str, Any]:
        project_id = str(require(args, "project_id"))
        query = str(require(args, "query"))
        limit = int(args.get("limit") or 5)

        embedding = await self._embed(query)
        if embedding is None:
            return {"error": "Decision search unavailable", "message": "No embedding provider configured"}

        results = await self.decisions.semantic_search(
            project_id, embedding, limit=limit, threshold=SIMILARITY_THRESHOLD
        )
        return {
            "query": query,
            "results": [
                {
                    "decision": {
                        "id": r.decision.id,
                        "number": r.decision.decision_number,
                        "title": r.decision.title,
                        "date": r.decision.date,
                        "decision": r.decision.decision,
                        "reasoning": r.decision.reasoning,
                    },
                    "similarity": r.similarity,
                }
                for r in results
            ],
        }

    async def get_decision(self, args: Dict[str, Any]) -> Dict[str, Any]:
        decision = await self.decisions.get(str(require(args, "decision_id")))
        if decision is None:
            return {"error": "Decision not found"}
        return decision.model_dump(mode="json", exclude={"embedding"})

    async def log_decision(self, args: Dict[str, Any]) -> Dict[str, Any]:
        project_id = str(require(args, "project_id"))
        title = str(require(args, "title"))
        decision_text = str(require(args, "decision"))
        reasoning = str(require(args, "reasoning"))
        decision_maker = str(require(args, "decision_maker"))

        try:
            embedding = await self._embed(f"{title}\n{decision_text}\n{reasoning}")
        except Exception as e:
            logger.warning(f"Embedding failed for decision '{title}'; storing without embedding: {e}")
            embedding = None

        stored = await self.decisions.create(
            Decision(
                title=title,
                decision_maker=decision_maker,
                project=project_id,
                decision=decision_text,
                reasoning=reasoning,
                considerations=args.get("considerations"),
                uncertainties=args.get("uncertainties"),
                reversibility=args.get("reversibility"),
                would_change_if=args.get("would_change_if"),
                embedding=embedding,
            )
        )
        logger.info(f"Decision {stored.id} logged by {decision_maker}")
        return {
            "success": True,
            "decision_id": stored.id,
            "decision_number": stored.decision_number,
            "project": stored.project,
        }
