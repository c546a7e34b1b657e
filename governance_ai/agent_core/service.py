from __future__ import annotations

"""High-level request handling.

``GovernanceService`` is the application-facing entry point:

1. Looks up the request's project.
2. Refines the request's trust level with ``TrustClassifier``.
3. Routes the request to a role with ``IntentRouter``.
4. Runs the role through ``AgentInvoker`` and returns its response.

The service is intentionally thin: policy lives in the hooks and the
invoker, routing rules in the router.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import ConfigurationError
from .router import IntentRouter
from .runtime.engine import AgentInvoker
from .schemas.config import ProjectConfig
from .schemas.domain import GovernanceRequest, IntentCategory
from .trust import TrustClassifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GovernanceResponse:
    request: GovernanceRequest
    category: IntentCategory
    role: str
    response: str


class GovernanceService:
    """Classify, route and invoke for registered projects.

    Each project brings its own ``AgentInvoker`` because tool catalogs (MCP
    servers, the host repository) are configured per project.
    """

    def __init__(
        self,
        *,
        classifier: TrustClassifier,
        router: Optional[IntentRouter] = None,
    ) -> None:
        self._classifier = classifier
        self._router = router or IntentRouter()
        self._projects: Dict[str, ProjectConfig] = {}
        self._invokers: Dict[str, AgentInvoker] = {}

    def register_project(self, project: ProjectConfig, invoker: AgentInvoker) -> None:
        self._projects[project.id] = project
        self._invokers[project.id] = invoker
        self._classifier.register_project(project)

    def get_project(self, project_id: str) -> ProjectConfig:
        project = self._projects.get(project_id)
        if project is None:
            raise ConfigurationError(f"Unknown project: '{project_id}'")
        return project

    async def handle(self, request: GovernanceRequest) -> GovernanceResponse:
        """
        Handle one inbound request end to end.

        Raises:
            ConfigurationError: Unknown project or no role accepts the request.
            Exception: Fatal invocation failures propagate from the invoker.
        """
        project = self.get_project(request.project)

        trust = await self._classifier.classify(request)
        request = request.model_copy(update={"trust": trust})

        category = self._router.classify_intent(request.intent, request.payload)
        role = self._router.find_best_role(category, trust, project)
        logger.info(f"Request {request.id} ({category.value}, {trust.value}) routed to role {role.name}")

        text = await self._invokers[project.id].invoke(request, role, project)
        return GovernanceResponse(request=request, category=category, role=role.name, response=text)
