from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from ..repos.interfaces import ChallengeRepository
from ..schemas.domain import Challenge, ChallengeStatus
from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

_OUTCOMES = (ChallengeStatus.accepted.value, ChallengeStatus.rejected.value)


@dataclass(frozen=True)
class ChallengeTools(BaseToolHandlerSet):
    """Submit, list and answer challenges against logged decisions."""

    challenges: ChallengeRepository
    name: str = "challenge"

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                name="submit_challenge",
                description="Challenge a governance decision. Available to all trust levels.",
                input_schema=schema(
                    {
                        "decision_id": {"type": "string", "description": "ID of decision being challenged"},
                        "project_id": {"type": "string", "description": "Project ID"},
                        "submitted_by": {"type": "string", "description": "Who is submitting the challenge"},
                        "argument": {
                            "type": "string",
                            "description": "Argument for why the decision should be reconsidered",
                        },
                        "evidence": {"type": "string", "description": "Supporting evidence (optional)"},
                    },
                    ["decision_id", "project_id", "submitted_by", "argument"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="list_challenges",
                description="List pending challenges",
                input_schema=schema(
                    {
                        "project_id": {"type": "string", "description": "Project ID"},
                        "status": {
                            "type": "string",
                            "enum": [s.value for s in ChallengeStatus],
                            "description": "Filter by status (optional)",
                        },
                    },
                    ["project_id"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="respond_to_challenge",
                description="Respond to a challenge. (Authorized trust level required)",
                input_schema=schema(
                    {
                        "challenge_id": {"type": "string", "description": "Challenge ID"},
                        "responded_by": {"type": "string", "description": "Who is responding"},
                        "response": {"type": "string", "description": "Response to the challenge"},
                        "outcome": {
                            "type": "string",
                            "enum": list(_OUTCOMES),
                            "description": "Whether the challenge is accepted or rejected",
                        },
                    },
                    ["challenge_id", "responded_by", "response", "outcome"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "submit_challenge": self.submit_challenge,
            "list_challenges": self.list_challenges,
            "respond_to_challenge": self.respond_to_challenge,
        }

    async def submit_challenge(self, args: Dict[str, Any]) -> Dict[str, Any]:
        challenge = await self.challenges.create(
            Challenge(
                decision_id=str(require(args, "decision_id")),
                project=str(require(args, "project_id")),
                submitted_by=str(require(args, "submitted_by")),
                argument=str(require(args, "argument")),
                evidence=args.get("evidence"),
            )
        )
        return {"success": True, "challenge_id": challenge.id, "message": "Challenge submitted successfully"}

    async def list_challenges(self, args: Dict[str, Any]) -> Dict[str, Any]:
        status = args.get("status") or None
        items = await self.challenges.list(str(require(args, "project_id")), status)
        return {"challenges": [c.model_dump(mode="json") for c in items]}

    async def respond_to_challenge(self, args: Dict[str, Any]) -> Dict[str, Any]:
        outcome = str(require(args, "outcome"))
        if outcome not in _OUTCOMES:
            return {"error": "Invalid outcome", "message": f"outcome must be one of {', '.join(_OUTCOMES)}"}
        challenge = await self.challenges.respond(
            str(require(args, "challenge_id")),
            responded_by=str(require(args, "responded_by")),
            response=str(require(args, "response")),
            outcome=outcome,
        )
        if challenge is None:
            return {"error": "Challenge not found"}
        return {"success": True, "message": f"Challenge {outcome}", "challenge": challenge.model_dump(mode="json")}
