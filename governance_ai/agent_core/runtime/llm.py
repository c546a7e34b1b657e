from __future__ import annotations

"""LLM completion boundary.

The invoker talks to the model through the small ``LLMClient`` protocol using
provider-neutral content blocks. ``PydanticAILLMClient`` adapts it to
pydantic-ai's direct model request API, so any provider pydantic-ai supports
(``anthropic:...``, ``openai:...``, ...) can back an agent.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Protocol, Sequence, Union

from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import ModelRequestParameters
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from ..errors import LLMError
from ..tools.base import ToolSpec

logger = logging.getLogger(__name__)

STOP_TOOL_USE = "tool_use"
STOP_END_TURN = "end_turn"


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    tool_name: str
    content: str
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class ChatMessage:
    """One turn of history. ``user`` turns carry text or tool results."""

    role: Literal["user", "assistant"]
    content: List[ContentBlock]


@dataclass(frozen=True)
class LLMUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class LLMResponse:
    content: List[ContentBlock]
    stop_reason: str = STOP_END_TURN
    usage: LLMUsage = field(default_factory=LLMUsage)

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock) and b.text)

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]


class LLMClient(Protocol):
    async def complete(
        self,
        *,
        system: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        model: str,
        max_tokens: int,
    ) -> LLMResponse: ...


def _to_model_messages(system: str, messages: Sequence[ChatMessage]) -> List[ModelMessage]:
    out: List[ModelMessage] = []
    pending_system = system
    for msg in messages:
        if msg.role == "assistant":
            parts: List[Any] = []
            for b in msg.content:
                if isinstance(b, TextBlock):
                    parts.append(TextPart(content=b.text))
                elif isinstance(b, ToolUseBlock):
                    parts.append(ToolCallPart(tool_name=b.name, args=dict(b.input), tool_call_id=b.id))
            out.append(ModelResponse(parts=parts))
            continue

        req_parts: List[Any] = []
        if pending_system:
            req_parts.append(SystemPromptPart(content=pending_system))
            pending_system = ""
        for b in msg.content:
            if isinstance(b, ToolResultBlock):
                req_parts.append(ToolReturnPart(tool_name=b.tool_name, content=b.content, tool_call_id=b.tool_use_id))
            elif isinstance(b, TextBlock):
                req_parts.append(UserPromptPart(content=b.text))
        out.append(ModelRequest(parts=req_parts))
    return out


def _from_model_response(response: ModelResponse) -> LLMResponse:
    blocks: List[ContentBlock] = []
    for part in response.parts:
        if isinstance(part, TextPart):
            blocks.append(TextBlock(text=part.content))
        elif isinstance(part, ToolCallPart):
            blocks.append(ToolUseBlock(id=part.tool_call_id, name=part.tool_name, input=part.args_as_dict()))
    stop = STOP_TOOL_USE if any(isinstance(b, ToolUseBlock) for b in blocks) else STOP_END_TURN
    usage = LLMUsage(
        input_tokens=int(response.usage.input_tokens or 0),
        output_tokens=int(response.usage.output_tokens or 0),
    )
    return LLMResponse(content=blocks, stop_reason=stop, usage=usage)


class PydanticAILLMClient:
    """``LLMClient`` backed by ``pydantic_ai.direct.model_request``.

    Tool calls are not executed here; they come back as ``ToolUseBlock``s and
    the invoker decides what runs.
    """

    async def complete(
        self,
        *,
        system: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        model: str,
        max_tokens: int,
    ) -> LLMResponse:
        params = ModelRequestParameters(
            function_tools=[
                ToolDefinition(name=t.name, description=t.description, parameters_json_schema=dict(t.input_schema))
                for t in tools
            ]
        )
        history = _to_model_messages(system, messages)
        logger.debug(f"LLM request: model={model}, messages={len(history)}, tools={len(tools)}")
        try:
            response = await model_request(
                model,
                history,
                model_settings=ModelSettings(max_tokens=max_tokens),
                model_request_parameters=params,
            )
        except Exception as e:
            raise LLMError(f"LLM request to {model} failed: {e}") from e
        return _from_model_response(response)
