from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import RoutingConfigurationError
from .schemas.config import ProjectConfig, RoleDefinition
from .schemas.domain import GovernanceRequest, IntentCategory, TrustLevel

logger = logging.getLogger(__name__)

DEVELOPMENT_APPROVAL_LABELS = frozenset({"ready-for-development", "approved-for-development", "approved"})

DEFAULT_ROUTING: Dict[IntentCategory, Tuple[str, ...]] = {
    IntentCategory.triage: ("reception", "maintainer"),
    IntentCategory.governance: ("maintainer",),
    IntentCategory.review: ("maintainer",),
    IntentCategory.development: ("engineer", "maintainer"),
    IntentCategory.maintenance: ("engineer", "maintainer"),
}

_NOTIFICATION_TARGETS: Dict[str, IntentCategory] = {
    "engineer": IntentCategory.development,
    "maintainer": IntentCategory.governance,
    "reception": IntentCategory.triage,
}

_NOTIFICATION_RE = re.compile(r"notification for\s+(\w+)")

_KEYWORDS: Tuple[Tuple[IntentCategory, Tuple[str, ...]], ...] = (
    (IntentCategory.development, ("implement", "fix_bug", "fix bug", "develop")),
    (IntentCategory.governance, ("governance", "challenge", "evaluate", "decision", "appeal", "constitution")),
    (IntentCategory.triage, ("triage", "new issue", "comment on issue")),
    (IntentCategory.review, ("pull request", "pr #", "ci failure", "review")),
)


def _label_names(payload: Mapping[str, Any]) -> List[str]:
    names: List[str] = []
    for key in ("issue", "pull_request"):
        item = payload.get(key)
        if not isinstance(item, Mapping):
            continue
        for label in item.get("labels") or []:
            if isinstance(label, Mapping):
                name = label.get("name")
            else:
                name = label
            if name:
                names.append(str(name).strip().lower())
    return names


def _find_role(project: ProjectConfig, name: str) -> Optional[RoleDefinition]:
    wanted = name.strip().lower()
    for role in project.roles:
        if role.name.strip().lower() == wanted:
            return role
    return None


@dataclass(frozen=True)
class IntentRouter:
    """
    Route governance requests to a project role.

    Routing happens in two deterministic steps: the request's free-text intent
    and structured payload are classified into an ``IntentCategory``, then the
    first candidate role for that category which accepts the request's trust
    level is selected. A project's ``routing`` table overrides the built-in
    candidates per category.

    Attributes:
        default_routing: Built-in category to candidate role names table.
    """

    default_routing: Mapping[IntentCategory, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_ROUTING))

    def classify_intent(self, intent: str, payload: Optional[Mapping[str, Any]] = None) -> IntentCategory:
        """
        Classify an intent into a work category.

        Rules are applied in order and the first match wins:

        1. A development-approval label on the issue or pull request.
        2. A scheduled trigger or scheduled/maintenance wording.
        3. "notification for <role>" addressed to a known role.
        4. Development, governance, triage and review keywords, in that order.

        Returns:
            The matched category, or ``IntentCategory.unknown``.
        """
        payload = payload or {}
        text = (intent or "").lower()

        if any(label in DEVELOPMENT_APPROVAL_LABELS for label in _label_names(payload)):
            return IntentCategory.development

        if payload.get("scheduled") is True or payload.get("trigger") == "schedule":
            return IntentCategory.maintenance
        if "scheduled" in text or "maintenance" in text:
            return IntentCategory.maintenance

        m = _NOTIFICATION_RE.search(text)
        if m is not None and m.group(1) in _NOTIFICATION_TARGETS:
            return _NOTIFICATION_TARGETS[m.group(1)]

        for category, keywords in _KEYWORDS:
            if any(k in text for k in keywords):
                return category
        return IntentCategory.unknown

    def _candidates(self, category: IntentCategory, project: ProjectConfig) -> Iterable[str]:
        override = project.routing.get(IntentCategory(category).value)
        if override:
            return override
        return self.default_routing.get(IntentCategory(category), ())

    def find_best_role(self, category: IntentCategory, trust: TrustLevel, project: ProjectConfig) -> RoleDefinition:
        """
        Select the role that should handle a request.

        Raises:
            RoutingConfigurationError: If no role in the project accepts ``trust``.
        """
        for name in self._candidates(category, project):
            role = _find_role(project, name)
            if role is not None and role.accepts(trust):
                return role

        for role in project.roles:
            if role.accepts(trust):
                return role

        reception = _find_role(project, "reception")
        if reception is not None and reception.accepts(trust):
            return reception

        raise RoutingConfigurationError(project.id, IntentCategory(category).value, TrustLevel(trust).value)

    def route(self, request: GovernanceRequest, project: ProjectConfig) -> RoleDefinition:
        category = self.classify_intent(request.intent, request.payload)
        role = self.find_best_role(category, request.trust, project)
        logger.info(
            f"Routed request {request.id} ({request.project}) category={category.value} "
            f"trust={TrustLevel(request.trust).value} -> role={role.name}"
        )
        return role
