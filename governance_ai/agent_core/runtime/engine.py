from __future__ import annotations

"""LangGraph agent invoker.

``AgentInvoker`` runs one role against one request.

Execution model
---------------

- ``build_context`` assembles the system prompt and the role's tool catalog.
- ``call_llm`` sends the transcript to the model (with a timeout).
- ``execute_tools`` runs every tool-use block of the last turn, strictly in
  order, through the pre-tool-use hook, the conversation service or the tool
  dispatcher, and the post-tool-use hook.
- ``validate_stop`` runs the stop hook and produces the final text.

The graph loops ``call_llm -> execute_tools -> call_llm`` while the model keeps
requesting tools and the iteration ceiling is not reached.

Failure handling
----------------

Policy rejections and tool failures become error tool results and the loop
continues. Any other exception force-completes the session as ``failed`` and
propagates; no partial response is returned. In ``block`` mode a failed stop
validation raises ``SessionBlockedError`` after the session was finalized.

Nested conversations
--------------------

``converse`` calls re-enter ``invoke`` for the target role at ``depth + 1``.
The depth is carried explicitly; ``ConversationService`` refuses to go past
``MAX_CONVERSATION_DEPTH``.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from langgraph.graph import END, StateGraph

from ...core.config import Settings
from ..conversation.service import ConversationLocks, ConversationService
from ..errors import GovernanceError, LLMError, SessionBlockedError
from ..policy.constraints import default_registry
from ..policy.models import StopHookMode
from ..policy.post_tool_use import PostToolUseHook
from ..policy.pre_tool_use import PreToolUseHook
from ..policy.stop import StopHook
from ..schemas.config import ProjectConfig, RoleDefinition
from ..schemas.domain import AgentSession, GovernanceRequest, SessionStatus, ToolUse
from ..tools.base import ToolResult, ToolSpec
from ..tools.decision_log import LOG_DECISION_TOOL
from .llm import STOP_TOOL_USE, ChatMessage, TextBlock, ToolResultBlock, ToolUseBlock
from .models import InvokerDeps, _Invocation, _InvokerState

logger = logging.getLogger(__name__)

PROJECT_ARGUMENT = "project_id"


def _initial_prompt(request: GovernanceRequest) -> str:
    if not request.payload:
        return request.intent
    lines = [request.intent, "", "Request payload:"]
    lines += [f"- {k}: {v}" for k, v in request.payload.items()]
    return "\n".join(lines)


def _as_record(output: Any) -> Optional[Dict[str, Any]]:
    if output is None:
        return None
    if isinstance(output, dict):
        return output
    return {"result": output}


def _filter_specs(specs: List[ToolSpec], role: RoleDefinition) -> List[ToolSpec]:
    allowed = set(role.tools.allowed)
    denied = set(role.tools.denied)
    return [s for s in specs if s.name not in denied and (not allowed or s.name in allowed)]


class AgentInvoker:
    """Run the governed call/act loop for one role.

    One instance serves every role, request and nesting level; all
    per-invocation state travels through the graph state.
    """

    def __init__(
        self,
        *,
        deps: InvokerDeps,
        model: str = "anthropic:claude-sonnet-4-5",
        max_tokens: int = 8192,
        max_iterations: int = 10,
        llm_timeout_seconds: float = 120.0,
        stop_hook_mode: StopHookMode = StopHookMode.warn,
    ) -> None:
        """
        Initialize the AgentInvoker.

        Args:
            deps: Repositories, backends and builders shared by all invocations.
            model: Default model id; a role's ``model`` overrides it.
            max_tokens: Default output cap; a role's ``max_tokens`` overrides it.
            max_iterations: Upper bound of LLM calls per session.
            llm_timeout_seconds: Timeout for a single LLM call.
            stop_hook_mode: ``warn`` or ``block`` on undocumented significant actions.
        """
        self._deps = deps
        self._constraints = deps.constraints if deps.constraints is not None else default_registry(audit=deps.audit)
        self._model = model
        self._max_tokens = max_tokens
        self._max_iterations = max(1, int(max_iterations))
        self._llm_timeout = llm_timeout_seconds
        self._stop_mode = StopHookMode(stop_hook_mode)
        self._conversation_locks = ConversationLocks()
        self._graph = self._build_graph()

    @classmethod
    def from_settings(cls, deps: InvokerDeps, settings: Settings) -> "AgentInvoker":
        return cls(
            deps=deps,
            model=settings.llm.model,
            max_tokens=settings.llm.max_tokens,
            max_iterations=settings.agent.max_iterations,
            llm_timeout_seconds=settings.llm.timeout_seconds,
            stop_hook_mode=StopHookMode(settings.agent.stop_hook_mode),
        )

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_InvokerState)
        g.add_node("build_context", self._node_build_context)
        g.add_node("call_llm", self._node_call_llm)
        g.add_node("execute_tools", self._node_execute_tools)
        g.add_node("validate_stop", self._node_validate_stop)

        g.set_entry_point("build_context")
        g.add_edge("build_context", "call_llm")
        g.add_conditional_edges(
            "call_llm",
            self._route_after_llm,
            {"tools": "execute_tools", "stop": "validate_stop"},
        )
        g.add_conditional_edges(
            "execute_tools",
            self._route_after_tools,
            {"continue": "call_llm", "stop": "validate_stop"},
        )
        g.add_edge("validate_stop", END)
        return g.compile()

    async def invoke(
        self,
        request: GovernanceRequest,
        role: RoleDefinition,
        project: ProjectConfig,
        *,
        depth: int = 0,
        extra_context: Optional[str] = None,
    ) -> str:
        """Run ``role`` against ``request`` and return the agent's text.

        Raises:
            SessionBlockedError: ``block`` mode and undocumented significant actions.
            Exception: any fatal failure, after the session was marked ``failed``.
        """
        d = self._deps
        session = await d.sessions.create(AgentSession(project=project.id, role=role.name, request=request))
        logger.info(
            f"Session {session.id} started: project={project.id}, role={role.name}, "
            f"trust={request.trust.value}, depth={depth}"
        )

        run = _Invocation(
            session_id=session.id,
            request=request,
            role=role,
            project=project,
            depth=depth,
            extra_context=extra_context,
            pre=PreToolUseHook(
                audit=d.audit, constraints=self._constraints, session_id=session.id, project=project.id
            ),
            post=PostToolUseHook(
                audit=d.audit,
                decisions=d.decisions,
                sessions=d.sessions,
                session_id=session.id,
                project=project.id,
                embeddings=d.embeddings,
            ),
            stop=StopHook(
                sessions=d.sessions, audit=d.audit, session_id=session.id, project=project.id, mode=self._stop_mode
            ),
            conversation=ConversationService(
                threads=d.threads,
                project=project,
                current_role=role.name,
                depth=depth,
                invoke_role=self._nested_invoker(request, project),
                issue_creator=d.issue_creator,
                locks=self._conversation_locks,
            ),
        )
        state: _InvokerState = {"run": run, "system": "", "messages": [], "texts": [], "iterations": 0}

        try:
            final = await self._graph.ainvoke(state, config={"recursion_limit": 2 * self._max_iterations + 5})
        except SessionBlockedError:
            raise
        except Exception as e:
            logger.error(f"Session {session.id} failed: {e}")
            await run.stop.force_complete(SessionStatus.failed, str(e) or type(e).__name__)
            raise
        return str(final.get("response") or "")

    def _nested_invoker(self, request: GovernanceRequest, project: ProjectConfig):
        async def invoke_role(role_name: str, context: str, depth: int) -> str:
            target = project.get_role(role_name)
            if target is None:
                raise GovernanceError(f"Unknown role '{role_name}' in project '{project.id}'")
            return await self.invoke(request, target, project, depth=depth, extra_context=context)

        return invoke_role

    async def _node_build_context(self, state: _InvokerState) -> _InvokerState:
        run = state["run"]
        state["system"] = await self._deps.context_builder.build(
            run.project, run.role, run.request, run.extra_context
        )
        catalog = self._deps.dispatcher.get_tool_definitions(run.role.tools.allowed, run.role.tools.denied)
        names = {s.name for s in catalog}
        conversation_specs = [s for s in _filter_specs(run.conversation.tool_specs(), run.role) if s.name not in names]
        # conversation tools are listed first so they win name collisions
        run.tools = conversation_specs + [s for s in catalog if not run.conversation.has_tool(s.name)]
        state["messages"] = [ChatMessage(role="user", content=[TextBlock(text=_initial_prompt(run.request))])]
        return state

    async def _node_call_llm(self, state: _InvokerState) -> _InvokerState:
        run = state["run"]
        state["iterations"] = int(state.get("iterations") or 0) + 1
        model = run.role.model or self._model
        max_tokens = run.role.max_tokens or self._max_tokens
        try:
            response = await asyncio.wait_for(
                self._deps.llm.complete(
                    system=state["system"],
                    messages=list(state["messages"]),
                    tools=list(run.tools),
                    model=model,
                    max_tokens=max_tokens,
                ),
                timeout=self._llm_timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM call timed out after {self._llm_timeout}s") from e

        state["messages"].append(ChatMessage(role="assistant", content=list(response.content)))
        if response.text:
            state["texts"].append(response.text)
        usage = dict(state.get("usage") or {})
        usage["input_tokens"] = usage.get("input_tokens", 0) + response.usage.input_tokens
        usage["output_tokens"] = usage.get("output_tokens", 0) + response.usage.output_tokens
        state["usage"] = usage
        state["pending"] = response.tool_uses if response.stop_reason == STOP_TOOL_USE else []
        logger.debug(
            f"Session {run.session_id} iteration {state['iterations']}: stop_reason={response.stop_reason}, "
            f"tool_uses={len(state['pending'])}"
        )
        return state

    async def _node_execute_tools(self, state: _InvokerState) -> _InvokerState:
        run = state["run"]
        results: List[ToolResultBlock] = []
        for block in list(state.get("pending") or []):
            results.append(await self._run_tool(run, block))
        state["pending"] = []
        state["messages"].append(ChatMessage(role="user", content=list(results)))
        return state

    async def _dispatch(self, run: _Invocation, name: str, args: Dict[str, Any]) -> ToolResult:
        if not run.conversation.has_tool(name):
            return await self._deps.dispatcher.execute_tool(name, args)
        try:
            return await run.conversation.execute(name, args)
        except Exception as e:
            # a failed nested invocation is reported to the caller, not fatal here
            logger.error(f"Conversation tool '{name}' failed in session {run.session_id}: {e}")
            return ToolResult(ok=False, error=f"{type(e).__name__}: {e}")

    def _bind_project(self, run: _Invocation, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._deps.dispatcher.local_tool_spec(name)
        if spec is None or PROJECT_ARGUMENT not in (spec.input_schema.get("properties") or {}):
            return args
        supplied = args.get(PROJECT_ARGUMENT)
        if supplied not in (None, "", run.project.id):
            logger.warning(
                f"Session {run.session_id}: tool '{name}' asked for project '{supplied}', "
                f"bound to '{run.project.id}'"
            )
        return {**args, PROJECT_ARGUMENT: run.project.id}

    async def _run_tool(self, run: _Invocation, block: ToolUseBlock) -> ToolResultBlock:
        d = self._deps
        # governance tools only ever act on the session's own project
        args = self._bind_project(run, block.name, dict(block.input or {}))

        pre = await run.pre.validate(block.name, args, run.request, run.role)
        if not pre.allowed:
            await d.sessions.append_tool_use(
                run.session_id,
                ToolUse(tool_name=block.name, input=args, blocked=True, block_reason=pre.reason),
            )
            logger.info(f"Session {run.session_id}: tool '{block.name}' blocked: {pre.reason}")
            return ToolResultBlock(
                tool_use_id=block.id, tool_name=block.name, content=f"Error: {pre.reason}", is_error=True
            )

        result = await self._dispatch(run, block.name, args)

        if result.ok:
            run.actions_performed.append(block.name)
            if (
                block.name == LOG_DECISION_TOOL
                and isinstance(result.output, dict)
                and result.output.get("decision_id")
                and result.output.get("project") == run.project.id
            ):
                decision_id = str(result.output["decision_id"])
                await d.sessions.add_decision(run.session_id, decision_id)
                run.decisions_logged.append(decision_id)
            # log_decision records its own decision; do not synthesize a second one
            requires_logging = pre.requires_decision_logging and block.name != LOG_DECISION_TOOL
            post = await run.post.process(block.name, args, result.output, run.request, run.role, requires_logging)
        else:
            post = await run.post.process(
                block.name, args, {"error": result.error}, run.request, run.role, False
            )
        if post.decision_id:
            run.decisions_logged.append(post.decision_id)

        await d.sessions.append_tool_use(
            run.session_id,
            ToolUse(
                tool_name=block.name,
                input=args,
                output=_as_record(result.output) if result.ok else None,
                error=None if result.ok else result.error,
            ),
        )

        content = result.as_content()
        if post.warnings:
            content += "\n\n" + "\n".join(f"Warning: {w}" for w in post.warnings)
        return ToolResultBlock(tool_use_id=block.id, tool_name=block.name, content=content, is_error=not result.ok)

    async def _node_validate_stop(self, state: _InvokerState) -> _InvokerState:
        run = state["run"]
        result = await run.stop.validate(run.request, run.role, run.actions_performed, run.decisions_logged)
        if not result.can_complete:
            if run.stop.mode == StopHookMode.block:
                raise SessionBlockedError(run.session_id, result.missing_decisions)
            logger.warning(
                f"Session {run.session_id} completed without decisions for: {', '.join(result.missing_decisions)}"
            )
        state["response"] = "\n".join(state["texts"])
        logger.info(
            f"Session {run.session_id} finished after {state['iterations']} iteration(s), "
            f"{len(run.actions_performed)} tool call(s), {len(run.decisions_logged)} decision(s)"
        )
        return state

    def _route_after_llm(self, state: _InvokerState) -> str:
        return "tools" if state.get("pending") else "stop"

    def _route_after_tools(self, state: _InvokerState) -> str:
        if int(state.get("iterations") or 0) >= self._max_iterations:
            logger.warning(f"Session {state['run'].session_id} reached the iteration ceiling ({self._max_iterations})")
            return "stop"
        return "continue"
