from __future__ import annotations

"""Agent-to-agent conversations.

``converse`` is the blocking channel: it appends the calling role's message
to a thread shared with the target role, invokes the target role's agent one
level deeper with the thread as context, records the reply and returns it.
``send`` is the fire-and-forget channel: it files a tracked issue addressed to
a role and returns without invoking anybody.

Nested ``converse`` calls are bounded by ``MAX_CONVERSATION_DEPTH``. Hitting
the ceiling is reported to the calling agent as a failed tool result, never
raised.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from ..errors import ToolExecutionError
from ..repos.interfaces import ConversationThreadRepository
from ..schemas.config import ProjectConfig
from ..schemas.domain import (
    ConversationMessage,
    ConversationStatus,
    ConversationThread,
    NotificationType,
    Participant,
    ParticipantType,
    participant_set_key,
)
from ..tools.base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

logger = logging.getLogger(__name__)

MAX_CONVERSATION_DEPTH = 5

CONVERSE_TOOL = "converse"
SEND_TOOL = "send"

InvokeRole = Callable[[str, str, int], Awaitable[str]]


class CreatedNotification(Protocol):
    number: int
    url: str


class IssueCreator(Protocol):
    """Files the tracked issue behind ``send``."""

    async def create_issue(self, repository: str, title: str, body: str, labels: List[str]) -> CreatedNotification: ...


_TYPE_LABELS: Dict[str, str] = {
    NotificationType.escalation.value: "Escalation - Decision Needed",
    NotificationType.work_request.value: "Work Request",
    NotificationType.review_request.value: "Review Request",
    NotificationType.fyi.value: "For Your Information",
}


def type_label(notification_type: str) -> str:
    return _TYPE_LABELS.get(notification_type, "Notification")


def _role(role_name: str) -> Participant:
    return Participant(type=ParticipantType.role, id=role_name)


def _is_role(p: Participant, role_name: str) -> bool:
    return ParticipantType(p.type) is ParticipantType.role and p.id == role_name


class ConversationLocks:
    """
    Find-or-create locks keyed by project and participant set.

    Owned by the agent invoker and shared by every nesting level it runs.
    Entries are dropped once no coroutine holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class ConversationService(BaseToolHandlerSet):
    """
    Conversation tools bound to one agent invocation.

    A new instance is built for every invocation because ``current_role`` and
    ``depth`` differ per level. ``invoke_role(role, context, depth)`` runs the
    target role's agent and returns its final text.

    Find-or-create of the thread for a participant set is serialized through
    ``locks``, so two agents that open the same conversation at the same
    moment share one thread. The lock is released before the target agent
    runs; a nested call back into the same pair would otherwise deadlock.

    Threads are addressed by id only by their participants; any other role
    gets an in-band error.
    """

    name = "conversation"

    def __init__(
        self,
        *,
        threads: ConversationThreadRepository,
        project: ProjectConfig,
        current_role: str,
        depth: int,
        invoke_role: InvokeRole,
        issue_creator: Optional[IssueCreator] = None,
        locks: Optional[ConversationLocks] = None,
    ) -> None:
        self.threads = threads
        self.project = project
        self.current_role = current_role
        self.depth = depth
        self.invoke_role = invoke_role
        self.issue_creator = issue_creator
        self.locks = locks if locks is not None else ConversationLocks()

    async def _own_thread(self, conversation_id: str) -> Tuple[Optional[ConversationThread], Optional[Dict[str, Any]]]:
        thread = await self.threads.get(conversation_id)
        if thread is None or thread.project != self.project.id:
            return None, {"error": True, "message": f"Conversation not found: {conversation_id}"}
        if not any(_is_role(p, self.current_role) for p in thread.participants):
            logger.warning(f"{self.current_role} tried to use conversation {conversation_id} it is not part of")
            return None, {"error": True, "message": f"Not a participant in conversation {conversation_id}"}
        return thread, None

    def tool_specs(self) -> List[ToolSpec]:
        role_names = [r.name for r in self.project.roles if r.name != self.current_role]
        return [
            ToolSpec(
                name=CONVERSE_TOOL,
                description=(
                    "Have a synchronous conversation with another role. The other role's agent is invoked "
                    "with the conversation history and its reply is returned. Reuses the active conversation "
                    "with that role if one exists. Available roles: " + (", ".join(role_names) or "none")
                ),
                input_schema=schema(
                    {
                        "with_role": {
                            "type": "string",
                            "description": "Role to talk to (required when starting a new conversation)",
                        },
                        "message": {"type": "string", "description": "Your message"},
                        "conversation_id": {
                            "type": "string",
                            "description": "Continue a specific conversation (optional)",
                        },
                        "topic": {"type": "string", "description": "Topic for a new conversation (optional)"},
                    },
                    ["message"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="end_conversation",
                description="Mark a conversation as resolved",
                input_schema=schema(
                    {
                        "conversation_id": {"type": "string", "description": "Conversation to resolve"},
                        "resolution": {"type": "string", "description": "Summary of the outcome (optional)"},
                    },
                    ["conversation_id"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="list_conversations",
                description="List your conversations",
                input_schema=schema(
                    {
                        "status": {
                            "type": "string",
                            "enum": ["active", "resolved", "stale", "all"],
                            "description": "Filter by status (default: active)",
                        },
                        "limit": {"type": "number", "description": "Maximum results (default: 10)"},
                    }
                ),
                server=self.name,
            ),
            ToolSpec(
                name="get_conversation",
                description="Get a conversation with its full message history",
                input_schema=schema(
                    {"conversation_id": {"type": "string", "description": "Conversation ID"}},
                    ["conversation_id"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name=SEND_TOOL,
                description=(
                    "Send an asynchronous notification to another role. Creates a tracked issue and returns "
                    "immediately without waiting for a reply."
                ),
                input_schema=schema(
                    {
                        "to_role": {"type": "string", "description": "Recipient role"},
                        "type": {
                            "type": "string",
                            "enum": [t.value for t in NotificationType],
                            "description": "Notification type",
                        },
                        "subject": {"type": "string", "description": "Short subject line"},
                        "body": {"type": "string", "description": "Notification body (markdown)"},
                        "context": {
                            "type": "object",
                            "description": "Related ids such as conversation_id, issue_number or pr_number",
                        },
                    },
                    ["to_role", "type", "subject", "body"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            CONVERSE_TOOL: self.converse,
            "end_conversation": self.end_conversation,
            "list_conversations": self.list_conversations,
            "get_conversation": self.get_conversation,
            SEND_TOOL: self.send,
        }

    async def _find_or_create(self, target_role: str, topic: Optional[str]) -> ConversationThread:
        participants = [_role(self.current_role), _role(target_role)]
        key = f"{self.project.id}:{participant_set_key(participants)}"
        async with self.locks.hold(key):
            existing = await self.threads.find_active(self.project.id, participants)
            if existing is not None:
                return existing
            thread = ConversationThread(project=self.project.id, participants=participants, topic=topic)
            created = await self.threads.create(thread)
            logger.info(
                f"Opened conversation {created.id} between {self.current_role} and {target_role} "
                f"in project {self.project.id}"
            )
            return created

    async def converse(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if self.depth >= MAX_CONVERSATION_DEPTH:
            logger.warning(
                f"Conversation depth limit reached: {self.current_role} at depth {self.depth} "
                f"(max {MAX_CONVERSATION_DEPTH})"
            )
            return {
                "error": True,
                "message": (
                    f"Maximum conversation depth ({MAX_CONVERSATION_DEPTH}) reached. "
                    "Cannot start a nested conversation; answer with what you have or use send instead."
                ),
            }

        message = str(require(args, "message"))
        conversation_id = args.get("conversation_id")

        if conversation_id:
            thread, error = await self._own_thread(str(conversation_id))
            if error is not None:
                return error
            status = ConversationStatus(thread.status)
            if status is not ConversationStatus.active:
                return {"error": True, "message": f"Conversation is {status.value}, cannot continue"}
            other = next((p for p in thread.participants if not _is_role(p, self.current_role)), None)
            if other is None or ParticipantType(other.type) is not ParticipantType.role:
                return {"error": True, "message": "Cannot determine target role for conversation"}
            target_role = other.id
        else:
            with_role = args.get("with_role")
            if not with_role:
                return {"error": True, "message": "with_role is required when starting a new conversation"}
            target_role = str(with_role)
            if self.project.get_role(target_role) is None:
                return {"error": True, "message": f"Unknown role: {target_role}"}
            thread = await self._find_or_create(target_role, args.get("topic"))

        await self.threads.add_message(
            ConversationMessage(conversation_id=thread.id, from_participant=_role(self.current_role), content=message)
        )
        messages = await self.threads.get_messages(thread.id)
        context = self.format_conversation_context(thread, messages)

        logger.info(f"{self.current_role} -> {target_role} (conversation {thread.id}, depth {self.depth + 1})")
        response = await self.invoke_role(target_role, context, self.depth + 1)

        await self.threads.add_message(
            ConversationMessage(conversation_id=thread.id, from_participant=_role(target_role), content=response)
        )
        return {
            "conversation_id": thread.id,
            "with_role": target_role,
            "response": response,
            "message_count": len(messages) + 1,
        }

    async def end_conversation(self, args: Dict[str, Any]) -> Dict[str, Any]:
        conversation_id = str(require(args, "conversation_id"))
        _, error = await self._own_thread(conversation_id)
        if error is not None:
            return error
        resolution = args.get("resolution")
        await self.threads.update_status(conversation_id, ConversationStatus.resolved, resolution)
        return {
            "conversation_id": conversation_id,
            "status": ConversationStatus.resolved.value,
            "resolution": resolution or "No resolution provided",
        }

    async def list_conversations(self, args: Dict[str, Any]) -> Dict[str, Any]:
        status = str(args.get("status") or "active")
        limit = int(args.get("limit") or 10)
        me = _role(self.current_role)
        try:
            wanted = None if status == "all" else ConversationStatus(status)
        except ValueError as e:
            raise ToolExecutionError("list_conversations", f"unknown status '{status}'") from e

        threads = await self.threads.list_for_participant(self.project.id, me, status=wanted, limit=limit)

        return {
            "conversations": [
                {
                    "conversation_id": t.id,
                    "participants": [p.id for p in t.participants],
                    "status": ConversationStatus(t.status).value,
                    "topic": t.topic,
                    "updated_at": t.updated_at.isoformat(),
                }
                for t in threads
            ],
            "total": len(threads),
        }

    async def get_conversation(self, args: Dict[str, Any]) -> Dict[str, Any]:
        conversation_id = str(require(args, "conversation_id"))
        thread, error = await self._own_thread(conversation_id)
        if error is not None:
            return error
        messages = await self.threads.get_messages(conversation_id)
        return {
            "conversation_id": thread.id,
            "participants": [p.id for p in thread.participants],
            "status": ConversationStatus(thread.status).value,
            "topic": thread.topic,
            "created_at": thread.created_at.isoformat(),
            "updated_at": thread.updated_at.isoformat(),
            "messages": [
                {"from": m.from_participant.id, "content": m.content, "timestamp": m.timestamp.isoformat()}
                for m in messages
            ],
        }

    async def send(self, args: Dict[str, Any]) -> Dict[str, Any]:
        to_role = str(require(args, "to_role"))
        notification_type = str(require(args, "type"))
        subject = str(require(args, "subject"))
        body = str(require(args, "body"))
        context = args.get("context") or {}

        try:
            NotificationType(notification_type)
        except ValueError as e:
            raise ToolExecutionError(SEND_TOOL, f"unknown notification type '{notification_type}'") from e

        if self.issue_creator is None:
            return {
                "error": True,
                "message": "send tool is not available: GitHub issue creation not configured",
            }

        issue_body = self.format_notification_body(to_role, notification_type, body, context)
        labels = [f"notify:{to_role}", f"type:{notification_type}", f"from:{self.current_role}"]
        try:
            created = await self.issue_creator.create_issue(
                self.project.repository, f"[{notification_type}] {subject}", issue_body, labels
            )
        except Exception as e:
            logger.warning(f"send from {self.current_role} to {to_role} failed: {e}")
            return {"error": True, "message": f"Failed to send notification: {e}"}

        return {
            "success": True,
            "message": f"Notification sent to {to_role}",
            "issue_number": created.number,
            "issue_url": created.url,
            "type": notification_type,
            "to_role": to_role,
        }

    def format_notification_body(
        self, to_role: str, notification_type: str, body: str, context: Dict[str, Any]
    ) -> str:
        text = f"## {type_label(notification_type)}\n\n"
        text += f"**From:** {self.current_role}\n"
        text += f"**To:** {to_role}\n"
        text += f"**Type:** {notification_type}\n\n"
        text += "---\n\n"
        text += body
        if context:
            text += "\n\n---\n\n### Context\n\n```json\n"
            text += json.dumps(context, indent=2, default=str)
            text += "\n```\n"
            if context.get("conversation_id"):
                text += f"\n**Related Conversation:** `{context['conversation_id']}`\n"
            if context.get("issue_number"):
                text += f"\n**Related Issue:** #{context['issue_number']}\n"
            if context.get("pr_number"):
                text += f"\n**Related PR:** #{context['pr_number']}\n"
        return text

    def format_conversation_context(self, thread: ConversationThread, messages: List[ConversationMessage]) -> str:
        """Render the thread as extra context for the target agent."""
        text = "## Active Conversation\n"
        text += f"You are in a conversation with {self.current_role}"
        if thread.topic:
            text += f" about: {thread.topic}"
        text += ".\n\n"
        text += f"Conversation ID: {thread.id}\n\n"
        if messages:
            text += "### Thread History\n"
            for m in messages:
                text += f"\n[{m.from_participant.id}]: {m.content}\n"
            text += "\n"
        text += "### Your Turn\n"
        text += f"Respond to continue this conversation. Your response will be returned to {self.current_role}.\n"
        return text
