from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List

import pytest

from governance_ai.agent_core.conversation import (
    CONVERSE_TOOL,
    MAX_CONVERSATION_DEPTH,
    SEND_TOOL,
    ConversationLocks,
    ConversationService,
    type_label,
)
from governance_ai.agent_core.schemas.domain import (
    ConversationStatus,
    ConversationThread,
    Participant,
    ParticipantType,
)


class _RoleAgents:
    """Stands in for the agent invoker: replies with a canned answer per role."""

    def __init__(self) -> None:
        self.calls: List[tuple[str, str, int]] = []

    async def __call__(self, role: str, context: str, depth: int) -> str:
        self.calls.append((role, context, depth))
        return f"{role} says ok"


class _NoStore:
    def __getattr__(self, name):
        raise AssertionError(f"store accessed: {name}")


@dataclass(frozen=True)
class _Issue:
    number: int
    url: str


class _Issues:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created: List[tuple] = []

    async def create_issue(self, repository, title, body, labels):
        if self.fail:
            raise RuntimeError("403 Forbidden")
        self.created.append((repository, title, body, labels))
        return _Issue(number=41, url="http://mock/acme/widgets/issues/41")


def _service(repos, project, agents, *, role="maintainer", depth=0, issues=None, locks=None) -> ConversationService:
    return ConversationService(
        threads=repos.threads,
        project=project,
        current_role=role,
        depth=depth,
        invoke_role=agents,
        issue_creator=issues,
        locks=locks,
    )


def test_tool_catalog_lists_other_roles(repos, project) -> None:
    specs = _service(repos, project, _RoleAgents()).tool_specs()
    assert [s.name for s in specs] == [
        CONVERSE_TOOL,
        "end_conversation",
        "list_conversations",
        "get_conversation",
        SEND_TOOL,
    ]
    assert specs[0].description.endswith("Available roles: reception, engineer")


@pytest.mark.asyncio
async def test_converse_invokes_target_one_level_deeper(repos, project) -> None:
    agents = _RoleAgents()
    svc = _service(repos, project, agents, depth=1)
    res = await svc.execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "Can you fix #12?", "topic": "Bug 12"})
    assert res.ok
    assert res.output["with_role"] == "engineer"
    assert res.output["response"] == "engineer says ok"
    assert res.output["message_count"] == 2

    role, context, depth = agents.calls[0]
    assert (role, depth) == ("engineer", 2)
    assert "You are in a conversation with maintainer about: Bug 12." in context
    assert "[maintainer]: Can you fix #12?" in context
    assert "### Your Turn" in context

    history = await repos.threads.get_messages(res.output["conversation_id"])
    assert [(m.from_participant.id, m.content) for m in history] == [
        ("maintainer", "Can you fix #12?"),
        ("engineer", "engineer says ok"),
    ]


@pytest.mark.asyncio
async def test_active_thread_is_reused_for_same_pair(repos, project) -> None:
    agents = _RoleAgents()
    first = await _service(repos, project, agents).execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "a"})
    # the engineer starting the conversation lands in the same thread
    second = await _service(repos, project, agents, role="engineer").execute(
        CONVERSE_TOOL, {"with_role": "maintainer", "message": "b"}
    )
    assert first.output["conversation_id"] == second.output["conversation_id"]
    assert second.output["message_count"] == 4

    third = await _service(repos, project, agents).execute(CONVERSE_TOOL, {"with_role": "reception", "message": "c"})
    assert third.output["conversation_id"] != first.output["conversation_id"]
    assert len(repos.threads.threads) == 2


@pytest.mark.asyncio
async def test_concurrent_opens_share_one_thread(repos, project) -> None:
    locks = ConversationLocks()
    agents = _RoleAgents()
    results = await asyncio.gather(
        *[
            _service(repos, project, agents, locks=locks).execute(
                CONVERSE_TOOL, {"with_role": "engineer", "message": str(i)}
            )
            for i in range(4)
        ]
    )
    assert len({r.output["conversation_id"] for r in results}) == 1
    assert len(repos.threads.threads) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_depth_ceiling_is_an_in_band_error(project) -> None:
    agents = _RoleAgents()
    svc = ConversationService(
        threads=_NoStore(),
        project=project,
        current_role="maintainer",
        depth=MAX_CONVERSATION_DEPTH,
        invoke_role=agents,
    )
    res = await svc.execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "one more?"})
    assert not res.ok
    assert res.output["error"] is True
    assert res.error.startswith("Maximum conversation depth (5) reached.")
    assert agents.calls == []


@pytest.mark.asyncio
async def test_nested_conversations_stop_at_the_ceiling(repos, project) -> None:
    results = []

    async def invoke_role(role: str, context: str, depth: int) -> str:
        other = "engineer" if role == "maintainer" else "maintainer"
        nested = _service(repos, project, invoke_role, role=role, depth=depth)
        res = await nested.execute(CONVERSE_TOOL, {"with_role": other, "message": f"depth {depth}"})
        results.append((depth, res.ok))
        return res.output["response"] if res.ok else f"stopped at {depth}"

    top = await _service(repos, project, invoke_role).execute(
        CONVERSE_TOOL, {"with_role": "engineer", "message": "start"}
    )
    assert top.ok
    assert top.output["response"] == f"stopped at {MAX_CONVERSATION_DEPTH}"
    assert results[0] == (MAX_CONVERSATION_DEPTH, False)
    assert [d for d, _ in results] == [5, 4, 3, 2, 1]


@pytest.mark.asyncio
async def test_converse_argument_errors(repos, project) -> None:
    svc = _service(repos, project, _RoleAgents())

    missing = await svc.execute(CONVERSE_TOOL, {"message": "hello"})
    assert missing.error == "with_role is required when starting a new conversation"

    unknown = await svc.execute(CONVERSE_TOOL, {"with_role": "ghost", "message": "hello"})
    assert unknown.error == "Unknown role: ghost"

    not_found = await svc.execute(CONVERSE_TOOL, {"conversation_id": "nope", "message": "hello"})
    assert not_found.error == "Conversation not found: nope"

    no_message = await svc.execute(CONVERSE_TOOL, {"with_role": "engineer"})
    assert not no_message.ok


@pytest.mark.asyncio
async def test_continue_and_end_by_id(repos, project) -> None:
    agents = _RoleAgents()
    svc = _service(repos, project, agents)
    opened = await svc.execute(CONVERSE_TOOL, {"with_role": "reception", "message": "hi"})
    conversation_id = opened.output["conversation_id"]

    cont = await svc.execute(CONVERSE_TOOL, {"conversation_id": conversation_id, "message": "again"})
    assert cont.ok and cont.output["with_role"] == "reception"

    ended = await svc.execute("end_conversation", {"conversation_id": conversation_id})
    assert ended.output == {
        "conversation_id": conversation_id,
        "status": "resolved",
        "resolution": "No resolution provided",
    }
    assert repos.threads.threads[conversation_id].status == ConversationStatus.resolved

    closed = await svc.execute(CONVERSE_TOOL, {"conversation_id": conversation_id, "message": "more"})
    assert closed.error == "Conversation is resolved, cannot continue"

    # a new message to the same role opens a fresh thread
    fresh = await svc.execute(CONVERSE_TOOL, {"with_role": "reception", "message": "new topic"})
    assert fresh.output["conversation_id"] != conversation_id


@pytest.mark.asyncio
async def test_threads_are_closed_to_non_participants(repos, project) -> None:
    agents = _RoleAgents()
    opened = await _service(repos, project, agents).execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "hi"})
    conversation_id = opened.output["conversation_id"]
    agents.calls.clear()

    outsider = _service(repos, project, agents, role="reception")
    expected = f"Not a participant in conversation {conversation_id}"

    joined = await outsider.execute(CONVERSE_TOOL, {"conversation_id": conversation_id, "message": "let me in"})
    assert joined.error == expected
    ended = await outsider.execute("end_conversation", {"conversation_id": conversation_id})
    assert ended.error == expected
    read = await outsider.execute("get_conversation", {"conversation_id": conversation_id})
    assert read.error == expected

    assert agents.calls == []
    assert [m.from_participant.id for m in repos.threads.messages[conversation_id]] == ["maintainer", "engineer"]
    assert repos.threads.threads[conversation_id].status == ConversationStatus.active


@pytest.mark.asyncio
async def test_threads_of_other_projects_are_not_found(repos, project) -> None:
    agents = _RoleAgents()
    elsewhere = project.model_copy(update={"id": "zeta"})
    opened = await _service(repos, elsewhere, agents).execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "x"})
    conversation_id = opened.output["conversation_id"]

    res = await _service(repos, project, agents).execute("get_conversation", {"conversation_id": conversation_id})
    assert res.error == f"Conversation not found: {conversation_id}"


@pytest.mark.asyncio
async def test_list_conversations_reaches_old_threads(repos, project) -> None:
    def _pair(a: str, b: str) -> List[Participant]:
        return [Participant(type=ParticipantType.role, id=a), Participant(type=ParticipantType.role, id=b)]

    old = await repos.threads.create(
        ConversationThread(
            project="acme", participants=_pair("maintainer", "reception"), status=ConversationStatus.resolved
        )
    )
    for _ in range(60):
        await repos.threads.create(
            ConversationThread(
                project="acme", participants=_pair("engineer", "reception"), status=ConversationStatus.resolved
            )
        )

    svc = _service(repos, project, _RoleAgents())
    resolved = await svc.execute("list_conversations", {"status": "resolved"})
    assert [c["conversation_id"] for c in resolved.output["conversations"]] == [old.id]

    bad = await svc.execute("list_conversations", {"status": "archived"})
    assert not bad.ok and "archived" in (bad.error or "")


@pytest.mark.asyncio
async def test_list_and_get_conversations(repos, project) -> None:
    agents = _RoleAgents()
    svc = _service(repos, project, agents)
    a = await svc.execute(CONVERSE_TOOL, {"with_role": "reception", "message": "a", "topic": "welcome"})
    b = await svc.execute(CONVERSE_TOOL, {"with_role": "engineer", "message": "b"})
    await svc.execute("end_conversation", {"conversation_id": a.output["conversation_id"], "resolution": "done"})
    # not visible to the maintainer
    await _service(repos, project, agents, role="reception").execute(
        CONVERSE_TOOL, {"with_role": "engineer", "message": "c"}
    )

    active = await svc.execute("list_conversations", {})
    assert [c["conversation_id"] for c in active.output["conversations"]] == [b.output["conversation_id"]]

    resolved = await svc.execute("list_conversations", {"status": "resolved"})
    assert [c["topic"] for c in resolved.output["conversations"]] == ["welcome"]

    everything = await svc.execute("list_conversations", {"status": "all"})
    assert everything.output["total"] == 2

    detail = await svc.execute("get_conversation", {"conversation_id": a.output["conversation_id"]})
    assert detail.output["status"] == "resolved"
    assert [m["from"] for m in detail.output["messages"]] == ["maintainer", "reception"]

    missing = await svc.execute("get_conversation", {"conversation_id": "nope"})
    assert not missing.ok


@pytest.mark.asyncio
async def test_send_files_a_labelled_issue(repos, project) -> None:
    issues = _Issues()
    svc = _service(repos, project, _RoleAgents(), issues=issues)
    res = await svc.execute(
        SEND_TOOL,
        {
            "to_role": "engineer",
            "type": "work_request",
            "subject": "Implement export",
            "body": "Please implement CSV export.",
            "context": {"issue_number": 12},
        },
    )
    assert res.ok
    assert res.output == {
        "success": True,
        "message": "Notification sent to engineer",
        "issue_number": 41,
        "issue_url": "http://mock/acme/widgets/issues/41",
        "type": "work_request",
        "to_role": "engineer",
    }
    repository, title, body, labels = issues.created[0]
    assert repository == "acme/widgets"
    assert title == "[work_request] Implement export"
    assert labels == ["notify:engineer", "type:work_request", "from:maintainer"]
    assert body.startswith("## Work Request\n\n**From:** maintainer\n**To:** engineer\n")
    assert "**Related Issue:** #12" in body
    assert repos.threads.threads == {}


@pytest.mark.asyncio
async def test_send_failures(repos, project) -> None:
    message = {"to_role": "engineer", "type": "fyi", "subject": "s", "body": "b"}

    unconfigured = await _service(repos, project, _RoleAgents()).execute(SEND_TOOL, message)
    assert unconfigured.error == "send tool is not available: GitHub issue creation not configured"

    failing = await _service(repos, project, _RoleAgents(), issues=_Issues(fail=True)).execute(SEND_TOOL, message)
    assert failing.error == "Failed to send notification: 403 Forbidden"

    bad_type = await _service(repos, project, _RoleAgents(), issues=_Issues()).execute(
        SEND_TOOL, {**message, "type": "gossip"}
    )
    assert not bad_type.ok
    assert "gossip" in (bad_type.error or "")


def test_type_labels() -> None:
    assert type_label("escalation") == "Escalation - Decision Needed"
    assert type_label("fyi") == "For Your Information"
    assert type_label("other") == "Notification"
