from __future__ import annotations

from typing import List

import pytest

from governance_ai.agent_core import factory
from governance_ai.agent_core.errors import ConfigurationError, RoutingConfigurationError
from governance_ai.agent_core.factory import (
    build_embedding_provider,
    build_github_client,
    build_governance_service,
    build_handler_sets,
)
from governance_ai.agent_core.repos import create_engine, create_sessionmaker
from governance_ai.agent_core.schemas.domain import Channel, IntentCategory, TrustLevel
from governance_ai.agent_core.service import GovernanceService
from governance_ai.agent_core.tools import FileSystemWikiStore, RepositoryTools
from governance_ai.agent_core.trust import TrustClassifier
from governance_ai.clients import GitHubClient, HttpEmbeddingProvider
from governance_ai.core.config import LoggingConfig, Settings


class _Lookup:
    async def get_collaborator_permission(self, repository: str, username: str) -> str:
        return "write"


class _RecordingInvoker:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    async def invoke(self, request, role, project, *, depth=0, extra_context=None) -> str:
        self.calls.append((request, role.name, project.id))
        return f"{role.name} handled it"


@pytest.fixture
def service_and_invoker(project):
    invoker = _RecordingInvoker()
    service = GovernanceService(classifier=TrustClassifier(lookup=_Lookup()))
    service.register_project(project, invoker)
    return service, invoker


@pytest.mark.asyncio
async def test_handle_refines_trust_then_routes(service_and_invoker, make_request) -> None:
    service, invoker = service_and_invoker
    res = await service.handle(make_request("please triage this issue", trust=TrustLevel.anonymous))

    assert res.category == IntentCategory.triage
    assert res.role == "maintainer"
    assert res.response == "maintainer handled it"
    assert res.request.trust == TrustLevel.authorized
    request, role_name, project_id = invoker.calls[0]
    assert (request.trust, role_name, project_id) == (TrustLevel.authorized, "maintainer", "acme")


@pytest.mark.asyncio
async def test_admin_development_goes_to_engineer(service_and_invoker, make_request) -> None:
    service, _ = service_and_invoker
    res = await service.handle(make_request("implement CSV export", channel=Channel.admin_cli))
    assert (res.request.trust, res.role) == (TrustLevel.elevated, "engineer")


@pytest.mark.asyncio
async def test_anonymous_governance_falls_back_to_reception(service_and_invoker, make_request) -> None:
    service, _ = service_and_invoker
    res = await service.handle(make_request("review the governance policy", channel=Channel.public_api))
    assert (res.request.trust, res.role) == (TrustLevel.anonymous, "reception")


@pytest.mark.asyncio
async def test_unroutable_and_unknown_projects(make_request, project) -> None:
    invoker = _RecordingInvoker()
    service = GovernanceService(classifier=TrustClassifier())
    staff_only = project.model_copy(update={"roles": [project.get_role("engineer")]})
    service.register_project(staff_only, invoker)

    with pytest.raises(RoutingConfigurationError):
        await service.handle(make_request(channel=Channel.public_api))
    with pytest.raises(ConfigurationError, match="Unknown project"):
        await service.handle(make_request(project="ghost"))
    assert invoker.calls == []


@pytest.fixture
def bare_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Settings:
    for name in ("GITHUB_TOKEN", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return Settings(_env_file=None, wiki_root=str(tmp_path))


def test_optional_clients_need_credentials(bare_settings: Settings) -> None:
    assert build_embedding_provider(bare_settings) is None
    assert build_github_client(bare_settings) is None

    configured = bare_settings.model_copy(update={"github_token": "ghp_x", "openai_api_key": "sk-x"})
    assert isinstance(build_github_client(configured), GitHubClient)
    assert isinstance(build_embedding_provider(configured), HttpEmbeddingProvider)


def test_handler_sets_include_repository_tools_only_with_github(bare_settings, repos, project, tmp_path) -> None:
    wiki = FileSystemWikiStore(tmp_path)
    without = build_handler_sets(settings=bare_settings, repos=repos, wiki=wiki, project=project)
    assert [h.name for h in without] == ["decision-log", "challenge", "wiki", "developer", "observability"]

    github = GitHubClient("http://mock", token="t")
    with_github = build_handler_sets(settings=bare_settings, repos=repos, wiki=wiki, project=project, github=github)
    assert isinstance(with_github[-1], RepositoryTools)
    assert with_github[-1].repository == "acme/widgets"


@pytest.mark.asyncio
async def test_build_governance_service(bare_settings, project, make_request, monkeypatch: pytest.MonkeyPatch) -> None:
    logging_configs: List[LoggingConfig] = []
    monkeypatch.setattr(factory, "setup_logging", logging_configs.append)
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    service = await build_governance_service(
        settings=bare_settings,
        projects=[project],
        session_factory=create_sessionmaker(engine),
        llm=object(),
    )
    assert service.get_project("acme") is project
    with pytest.raises(ConfigurationError):
        service.get_project("other")
    assert logging_configs == [bare_settings.logging]
    await engine.dispose()


@pytest.mark.asyncio
async def test_build_governance_service_can_leave_logging_alone(
    bare_settings, project, monkeypatch: pytest.MonkeyPatch
) -> None:
    logging_configs: List[LoggingConfig] = []
    monkeypatch.setattr(factory, "setup_logging", logging_configs.append)
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await build_governance_service(
        settings=bare_settings,
        projects=[project],
        session_factory=create_sessionmaker(engine),
        llm=object(),
        configure_logging=False,
    )
    assert logging_configs == []
    await engine.dispose()
