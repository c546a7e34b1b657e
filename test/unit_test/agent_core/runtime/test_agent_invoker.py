from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from governance_ai.agent_core.errors import LLMError, SessionBlockedError
from governance_ai.agent_core.policy.models import StopHookMode
from governance_ai.agent_core.runtime import (
    AgentInvoker,
    InvokerDeps,
    LLMResponse,
    LLMUsage,
    SystemContextBuilder,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from governance_ai.agent_core.runtime.llm import STOP_TOOL_USE
from governance_ai.agent_core.schemas.config import RoleDefinition, ToolPermissions
from governance_ai.agent_core.schemas.domain import SessionStatus, TrustLevel
from governance_ai.agent_core.tools import BaseToolHandlerSet, DecisionLogTools, ToolDispatcher, ToolSpec


def _text(text: str) -> LLMResponse:
    return LLMResponse(content=[TextBlock(text=text)], usage=LLMUsage(input_tokens=10, output_tokens=5))


def _tool(name: str, args: Optional[Dict[str, Any]] = None, call_id: str = "call-1", note: str = "") -> LLMResponse:
    content: List[Any] = [TextBlock(text=note)] if note else []
    content.append(ToolUseBlock(id=call_id, name=name, input=dict(args or {})))
    return LLMResponse(content=content, stop_reason=STOP_TOOL_USE)


class _ScriptedLLM:
    """Replies per role from a script; the last reply of a script repeats."""

    def __init__(self, scripts: Dict[str, List[LLMResponse]]) -> None:
        self.scripts = {role: list(replies) for role, replies in scripts.items()}
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, *, system, messages, tools, model, max_tokens) -> LLMResponse:
        role = next(r for r in self.scripts if f"**Role:** {r}\n" in system)
        self.calls.append(
            {
                "role": role,
                "system": system,
                "messages": list(messages),
                "tools": [t.name for t in tools],
                "model": model,
                "max_tokens": max_tokens,
            }
        )
        replies = self.scripts[role]
        return replies.pop(0) if len(replies) > 1 else replies[0]


class _OpsTools(BaseToolHandlerSet):
    name = "ops"

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(name="get_issue", description="Read an issue", server=self.name),
            ToolSpec(name="close_issue", description="Close an issue", server=self.name),
            ToolSpec(name="deploy", description="Deploy without saying why", server=self.name),
        ]

    def handlers(self):
        return {"get_issue": self._get_issue, "close_issue": self._close_issue, "deploy": self._deploy}

    async def _get_issue(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"number": args.get("issue_number"), "title": "Crash on start"}

    async def _close_issue(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"number": args.get("issue_number"), "state": "closed"}

    async def _deploy(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"deployed": True, "decision": {"title": "Deploy", "decision": "Ship it", "reasoning": ""}}


@pytest.fixture
def project(project):
    maintainer = project.get_role("maintainer").model_copy(
        update={"significant_actions": ["merge_pull_request", "close_issue", "deploy"]}
    )
    roles = [maintainer if r.name == "maintainer" else r for r in project.roles]
    return project.model_copy(update={"roles": roles})


def _invoker(repos, llm, *, stop_hook_mode=StopHookMode.warn, **kwargs) -> AgentInvoker:
    deps = InvokerDeps(
        sessions=repos.sessions,
        decisions=repos.decisions,
        audit=repos.audit,
        threads=repos.threads,
        llm=llm,
        dispatcher=ToolDispatcher(handlers=[DecisionLogTools(decisions=repos.decisions), _OpsTools()]),
        context_builder=SystemContextBuilder(decisions=repos.decisions, threads=repos.threads),
    )
    return AgentInvoker(deps=deps, stop_hook_mode=stop_hook_mode, **kwargs)


def _only_session(repos, role: str = "maintainer"):
    sessions = [s for s in repos.sessions.by_id.values() if s.role == role]
    assert len(sessions) == 1
    return sessions[0]


@pytest.mark.asyncio
async def test_text_only_completion(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_text("Triaged as a bug.")]})
    request = make_request("please triage this issue", payload={"issue_number": 12})

    out = await _invoker(repos, llm).invoke(request, project.get_role("maintainer"), project)

    assert out == "Triaged as a bug."
    call = llm.calls[0]
    assert call["model"] == "anthropic:claude-sonnet-4-5"
    assert "# Current Request" in call["system"]
    assert "Maintainers decide by lazy consensus." in call["system"]
    first = call["messages"][0]
    assert first.role == "user"
    assert first.content[0].text == "please triage this issue\n\nRequest payload:\n- issue_number: 12"
    assert call["tools"][:5] == ["converse", "end_conversation", "list_conversations", "get_conversation", "send"]
    assert "get_issue" in call["tools"] and "log_decision" in call["tools"]

    session = _only_session(repos)
    assert session.status == SessionStatus.completed
    assert repos.audit.actions() == ["session_completed"]


@pytest.mark.asyncio
async def test_tool_loop_feeds_results_back(repos, project, make_request) -> None:
    llm = _ScriptedLLM(
        {
            "maintainer": [
                _tool("get_issue", {"issue_number": 12}, note="Let me look."),
                _text("Issue 12 is a crash."),
            ]
        }
    )
    out = await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    assert out == "Let me look.\nIssue 12 is a crash."
    second = llm.calls[1]["messages"]
    assert [m.role for m in second] == ["user", "assistant", "user"]
    result = second[2].content[0]
    assert isinstance(result, ToolResultBlock)
    assert result.tool_use_id == "call-1" and not result.is_error
    assert json.loads(result.content) == {"number": 12, "title": "Crash on start"}

    session = _only_session(repos)
    assert [t.tool_name for t in session.tool_uses] == ["get_issue"]
    assert session.tool_uses[0].output == {"number": 12, "title": "Crash on start"}
    assert repos.audit.actions() == ["tool_use_attempt", "tool_use_completed", "session_completed"]


@pytest.mark.asyncio
async def test_denied_tool_is_reported_to_the_model(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"reception": [_tool("merge_pull_request", {"pull_number": 3}), _text("I cannot merge.")]})
    reception = project.get_role("reception")
    out = await _invoker(repos, llm).invoke(make_request(trust=TrustLevel.contributor), reception, project)

    assert out == "I cannot merge."
    assert "merge_pull_request" not in llm.calls[0]["tools"]
    result = llm.calls[1]["messages"][-1].content[0]
    assert result.is_error
    assert result.content == 'Error: Tool "merge_pull_request" is explicitly denied for role reception'

    session = _only_session(repos, "reception")
    assert session.tool_uses[0].blocked
    assert session.status == SessionStatus.completed


@pytest.mark.asyncio
async def test_hard_constraint_blocks_low_trust_merge(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_tool("merge_pull_request", {"pull_number": 3}), _text("Need write access.")]})
    await _invoker(repos, llm).invoke(
        make_request(trust=TrustLevel.contributor), project.get_role("maintainer"), project
    )
    result = llm.calls[1]["messages"][-1].content[0]
    assert result.content == "Error: Hard constraint violated: Merging needs write access"
    # blocked calls are not actions, so nothing is missing a decision
    assert _only_session(repos).status == SessionStatus.completed


@pytest.mark.asyncio
async def test_significant_action_gets_a_decision(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_tool("close_issue", {"issue_number": 9}), _text("Closed.")]})
    await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    session = _only_session(repos)
    assert session.decisions_logged == ["acme-0001"]
    assert session.status == SessionStatus.completed
    assert repos.decisions.by_id["acme-0001"].tags == ["close_issue", "maintainer"]


@pytest.mark.asyncio
async def test_log_decision_is_linked_once(repos, project, make_request) -> None:
    args = {
        "project_id": "acme",
        "title": "Adopt semver",
        "decision": "Use semantic versioning",
        "reasoning": "Predictable upgrades",
        "decision_maker": "maintainer",
    }
    llm = _ScriptedLLM({"maintainer": [_tool("log_decision", args), _text("Logged.")]})
    await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    assert list(repos.decisions.by_id) == ["acme-0001"]
    assert _only_session(repos).decisions_logged == ["acme-0001"]


@pytest.mark.asyncio
async def test_governance_tools_act_on_the_session_project(repos, project, make_request) -> None:
    base = {
        "title": "Adopt semver",
        "decision": "Use semantic versioning",
        "reasoning": "Predictable upgrades",
        "decision_maker": "maintainer",
    }
    llm = _ScriptedLLM(
        {
            "maintainer": [
                _tool("log_decision", {**base, "project_id": "other-project"}, call_id="c1"),
                _tool("log_decision", base, call_id="c2"),
                _text("Logged."),
            ]
        }
    )
    await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    assert sorted(repos.decisions.by_id) == ["acme-0001", "acme-0002"]
    assert {d.project for d in repos.decisions.by_id.values()} == {"acme"}
    session = _only_session(repos)
    assert session.decisions_logged == ["acme-0001", "acme-0002"]
    assert [t.input["project_id"] for t in session.tool_uses] == ["acme", "acme"]


@pytest.mark.asyncio
async def test_undocumented_action_warns_by_default(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_tool("deploy"), _text("Deployed.")]})
    out = await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    assert out == "Deployed."
    result = llm.calls[1]["messages"][-1].content[0]
    assert "Warning: Significant action performed without documented reasoning" in result.content
    assert _only_session(repos).status == SessionStatus.active
    assert "session_completion_blocked" in repos.audit.actions()


@pytest.mark.asyncio
async def test_undocumented_action_blocks_in_block_mode(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_tool("deploy"), _text("Deployed.")]})
    invoker = _invoker(repos, llm, stop_hook_mode=StopHookMode.block)

    with pytest.raises(SessionBlockedError) as exc:
        await invoker.invoke(make_request(), project.get_role("maintainer"), project)

    assert exc.value.missing_decisions == ["deploy"]
    session = _only_session(repos)
    assert session.status == SessionStatus.blocked
    assert repos.sessions.completions == [(session.id, SessionStatus.blocked)]


@pytest.mark.asyncio
async def test_llm_timeout_fails_the_session(repos, project, make_request) -> None:
    class _SlowLLM:
        async def complete(self, **kwargs) -> LLMResponse:
            await asyncio.sleep(5)
            return _text("too late")

    invoker = _invoker(repos, _SlowLLM(), llm_timeout_seconds=0.01)
    with pytest.raises(LLMError, match="timed out"):
        await invoker.invoke(make_request(), project.get_role("maintainer"), project)

    assert _only_session(repos).status == SessionStatus.failed
    assert repos.audit.actions()[-1] == "session_force_completed"


@pytest.mark.asyncio
async def test_llm_error_propagates_without_partial_response(repos, project, make_request) -> None:
    class _BrokenLLM:
        async def complete(self, **kwargs) -> LLMResponse:
            raise LLMError("LLM request to anthropic:claude-sonnet-4-5 failed: 529 overloaded")

    with pytest.raises(LLMError, match="overloaded"):
        await _invoker(repos, _BrokenLLM()).invoke(make_request(), project.get_role("maintainer"), project)
    assert _only_session(repos).status == SessionStatus.failed


@pytest.mark.asyncio
async def test_iteration_ceiling(repos, project, make_request) -> None:
    llm = _ScriptedLLM({"maintainer": [_tool("get_issue", {"issue_number": 1}, note="looking")]})
    out = await _invoker(repos, llm, max_iterations=3).invoke(make_request(), project.get_role("maintainer"), project)

    assert len(llm.calls) == 3
    assert out == "looking\nlooking\nlooking"
    assert _only_session(repos).status == SessionStatus.completed


@pytest.mark.asyncio
async def test_role_overrides_model_and_tool_catalog(repos, project, make_request) -> None:
    role = RoleDefinition(
        name="scout",
        accepts_trust=[TrustLevel.authorized],
        tools=ToolPermissions(allowed=["get_issue"]),
        model="openai:gpt-4o",
        max_tokens=256,
    )
    llm = _ScriptedLLM({"scout": [_text("ok")]})
    await _invoker(repos, llm).invoke(make_request(), role, project)

    call = llm.calls[0]
    assert call["tools"] == ["get_issue"]
    assert (call["model"], call["max_tokens"]) == ("openai:gpt-4o", 256)


@pytest.mark.asyncio
async def test_converse_runs_the_target_role(repos, project, make_request) -> None:
    llm = _ScriptedLLM(
        {
            "maintainer": [
                _tool("converse", {"with_role": "engineer", "message": "Please fix #12", "topic": "Bug 12"}),
                _text("Engineer is on it."),
            ],
            "engineer": [_text("On it.")],
        }
    )
    out = await _invoker(repos, llm).invoke(make_request(), project.get_role("maintainer"), project)

    assert out == "Engineer is on it."
    assert [c["role"] for c in llm.calls] == ["maintainer", "engineer", "maintainer"]
    engineer_system = llm.calls[1]["system"]
    assert "## Active Conversation" in engineer_system
    assert "[maintainer]: Please fix #12" in engineer_system
    assert "# Open Conversations" in engineer_system

    reply = json.loads(llm.calls[2]["messages"][-1].content[0].content)
    assert reply["with_role"] == "engineer"
    assert reply["response"] == "On it."
    assert reply["message_count"] == 2

    engineer_session = _only_session(repos, "engineer")
    assert engineer_session.status == SessionStatus.completed
    assert _only_session(repos).status == SessionStatus.completed
