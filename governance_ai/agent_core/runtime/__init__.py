"""LangGraph-based agent invoker.

The invoker takes a routed request and runs the governed call/act loop for a
role:

- assemble the system context (principles, constitution, wiki, precedent
  decisions, role, open conversations);
- call the LLM and execute the tools it requests, each gated by the
  pre-tool-use hook and recorded by the post-tool-use hook;
- validate completion with the stop hook.

The main entry point is ``AgentInvoker``.
"""

from .context import SystemContextBuilder
from .engine import AgentInvoker
from .llm import (
    ChatMessage,
    LLMClient,
    LLMResponse,
    LLMUsage,
    PydanticAILLMClient,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from .models import InvokerDeps

__all__ = [
    "SystemContextBuilder",
    "AgentInvoker",
    "ChatMessage",
    "LLMClient",
    "LLMResponse",
    "LLMUsage",
    "PydanticAILLMClient",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "InvokerDeps",
]
