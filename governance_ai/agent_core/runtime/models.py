from __future__ import annotations

"""Invoker dependency bundle and LangGraph state types.

- ``InvokerDeps`` collects the repositories, backends and builders the invoker
  needs. It is shared by every nesting level of a conversation.
- ``_InvokerState`` is the state passed between LangGraph nodes. Everything
  that belongs to one invocation (the session, its hooks, the transcript)
  lives in it, so a single compiled graph serves concurrent invocations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NotRequired, Optional, Required, TypedDict

from ..conversation.service import ConversationService, IssueCreator
from ..embeddings import EmbeddingProvider
from ..policy.constraints import ConstraintRegistry
from ..policy.post_tool_use import PostToolUseHook
from ..policy.pre_tool_use import PreToolUseHook
from ..policy.stop import StopHook
from ..repos.interfaces import (
    AuditRepository,
    ConversationThreadRepository,
    DecisionRepository,
    SessionRepository,
)
from ..schemas.config import ProjectConfig, RoleDefinition
from ..schemas.domain import GovernanceRequest
from ..tools.base import ToolSpec
from ..tools.dispatcher import ToolDispatcher
from .context import SystemContextBuilder
from .llm import ChatMessage, LLMClient, ToolUseBlock


@dataclass(frozen=True)
class InvokerDeps:
    """Dependency bundle for ``AgentInvoker``.

    Typically built once by application wiring code. ``constraints`` defaults
    to the built-in registry over ``audit`` when omitted.
    """

    sessions: SessionRepository
    decisions: DecisionRepository
    audit: AuditRepository
    threads: ConversationThreadRepository
    llm: LLMClient
    dispatcher: ToolDispatcher
    context_builder: SystemContextBuilder

    constraints: Optional[ConstraintRegistry] = None
    embeddings: Optional[EmbeddingProvider] = None
    issue_creator: Optional[IssueCreator] = None


@dataclass
class _Invocation:
    """Per-invocation collaborators and bookkeeping."""

    session_id: str
    request: GovernanceRequest
    role: RoleDefinition
    project: ProjectConfig
    depth: int
    extra_context: Optional[str]

    pre: PreToolUseHook
    post: PostToolUseHook
    stop: StopHook
    conversation: ConversationService

    tools: List[ToolSpec] = field(default_factory=list)
    actions_performed: List[str] = field(default_factory=list)
    decisions_logged: List[str] = field(default_factory=list)


class _InvokerState(TypedDict):
    """Mutable LangGraph state for a single invocation.

    Required keys:

    - ``run``: the ``_Invocation`` being driven.
    - ``system``: assembled system context.
    - ``messages``: chat history sent to the model.
    - ``texts``: text of every assistant turn, in order.
    - ``iterations``: number of LLM calls made.

    Optional keys:

    - ``pending``: tool-use blocks from the last model turn.
    - ``response``: final response text, set by the stop node.
    """

    run: Required[_Invocation]
    system: Required[str]
    messages: Required[List[ChatMessage]]
    texts: Required[List[str]]
    iterations: Required[int]
    pending: NotRequired[List[ToolUseBlock]]
    response: NotRequired[str]
    usage: NotRequired[Dict[str, Any]]
