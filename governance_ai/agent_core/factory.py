from __future__ import annotations

"""Convenience factories for wiring the governance engine.

These helpers build the default tool catalog, an ``AgentInvoker`` per project
and a ready ``GovernanceService`` from ``Settings``. Tests and advanced
deployments can skip them and construct the pieces directly.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..clients.embeddings import HttpEmbeddingProvider
from ..clients.github import GitHubClient
from ..core.config import Settings
from ..core.logging_config import setup_logging
from ..mcp_client.manager import McpClientManager
from .embeddings import EmbeddingProvider
from .policy.constraints import default_registry
from .repos.sql import SqlRepoBundle, build_sql_repos
from .runtime.context import SystemContextBuilder
from .runtime.engine import AgentInvoker
from .runtime.llm import LLMClient, PydanticAILLMClient
from .runtime.models import InvokerDeps
from .schemas.config import ProjectConfig
from .service import GovernanceService
from .tools.base import ToolHandlerSet
from .tools.challenge import ChallengeTools
from .tools.decision_log import DecisionLogTools
from .tools.developer import DeveloperTools
from .tools.dispatcher import ToolDispatcher
from .tools.observability import ObservabilityTools
from .tools.repository import RepositoryTools
from .tools.wiki import FileSystemWikiStore, WikiStore, WikiTools
from .trust import TrustClassifier

logger = logging.getLogger(__name__)


def build_embedding_provider(settings: Settings) -> Optional[EmbeddingProvider]:
    """Return an HTTP embedding provider, or None when no API key is set."""
    cfg = settings.embeddings
    if not cfg.api_key:
        return None
    return HttpEmbeddingProvider(cfg.base_url, api_key=cfg.api_key, model=cfg.model)


def build_github_client(settings: Settings) -> Optional[GitHubClient]:
    cfg = settings.github
    if not cfg.token:
        return None
    return GitHubClient(cfg.api_url, token=cfg.token)


def build_handler_sets(
    *,
    settings: Settings,
    repos: SqlRepoBundle,
    wiki: WikiStore,
    project: ProjectConfig,
    embeddings: Optional[EmbeddingProvider] = None,
    github: Optional[GitHubClient] = None,
) -> List[ToolHandlerSet]:
    """Build the in-process tool handler sets for one project."""
    dev = settings.developer
    handler_sets: List[ToolHandlerSet] = [
        DecisionLogTools(decisions=repos.decisions, embeddings=embeddings),
        ChallengeTools(challenges=repos.challenges),
        WikiTools(drafts=repos.wiki_drafts, store=wiki),
        DeveloperTools(
            repo_root=dev.repo_root,
            cli_command=dev.cli_command,
            mcp_config_path=dev.mcp_config_path,
            timeout_seconds=dev.timeout_seconds,
        ),
        ObservabilityTools(sessions=repos.sessions, audit=repos.audit),
    ]
    if github is not None and project.repository:
        handler_sets.append(RepositoryTools(host=github, repository=project.repository))
    return handler_sets


async def build_project_invoker(
    *,
    settings: Settings,
    project: ProjectConfig,
    repos: SqlRepoBundle,
    llm: LLMClient,
    wiki: WikiStore,
    embeddings: Optional[EmbeddingProvider] = None,
    github: Optional[GitHubClient] = None,
    mcp: Optional[McpClientManager] = None,
) -> AgentInvoker:
    """
    Build an ``AgentInvoker`` for one project.

    When ``mcp`` is given, the project's MCP servers are connected on it; the
    caller owns the manager and closes it on shutdown.
    """
    if mcp is not None and project.mcp_servers:
        await mcp.connect(list(project.mcp_servers))

    dispatcher = ToolDispatcher(
        mcp=mcp,
        handlers=build_handler_sets(
            settings=settings, repos=repos, wiki=wiki, project=project, embeddings=embeddings, github=github
        ),
    )
    deps = InvokerDeps(
        sessions=repos.sessions,
        decisions=repos.decisions,
        audit=repos.audit,
        threads=repos.threads,
        llm=llm,
        dispatcher=dispatcher,
        context_builder=SystemContextBuilder(
            decisions=repos.decisions, threads=repos.threads, embeddings=embeddings, wiki=wiki
        ),
        constraints=default_registry(audit=repos.audit),
        embeddings=embeddings,
        issue_creator=github,
    )
    return AgentInvoker.from_settings(deps, settings)


async def build_governance_service(
    *,
    settings: Settings,
    projects: Iterable[ProjectConfig],
    session_factory: async_sessionmaker[AsyncSession],
    llm: Optional[LLMClient] = None,
    mcp: Optional[McpClientManager] = None,
    configure_logging: bool = True,
) -> GovernanceService:
    """
    Wire a ``GovernanceService`` for ``projects`` from settings.

    Process logging is set up from ``settings.logging`` unless
    ``configure_logging`` is false, for hosts that own their logging.
    """
    if configure_logging:
        setup_logging(settings.logging)
    repos = build_sql_repos(session_factory=session_factory)
    embeddings = build_embedding_provider(settings)
    github = build_github_client(settings)
    wiki = FileSystemWikiStore(settings.wiki_root)
    llm = llm or PydanticAILLMClient()

    classifier = TrustClassifier(lookup=github, ttl_seconds=settings.agent.trust_cache_ttl_seconds)
    service = GovernanceService(classifier=classifier)
    for project in projects:
        invoker = await build_project_invoker(
            settings=settings,
            project=project,
            repos=repos,
            llm=llm,
            wiki=wiki,
            embeddings=embeddings,
            github=github,
            mcp=mcp,
        )
        service.register_project(project, invoker)
        logger.info(f"Registered project {project.id} with {len(project.roles)} role(s)")
    return service
