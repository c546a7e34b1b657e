"""Tool catalog and dispatch.

In-process handler sets expose governance operations (decisions, challenges,
wiki, delegated development, observability, host repository) as tools; the
``ToolDispatcher`` merges them with tools from external MCP servers.
"""

from .base import BaseToolHandlerSet, ToolHandlerSet, ToolResult, ToolSpec
from .challenge import ChallengeTools
from .decision_log import LOG_DECISION_TOOL, DecisionLogTools
from .developer import CliResult, DeveloperTools, build_cli_args, parse_cli_output
from .dispatcher import ToolDispatcher
from .observability import ObservabilityTools
from .repository import RepositoryHost, RepositoryTools
from .wiki import FileSystemWikiStore, WikiStore, WikiTools

__all__ = [
    "BaseToolHandlerSet",
    "ToolHandlerSet",
    "ToolResult",
    "ToolSpec",
    "ChallengeTools",
    "LOG_DECISION_TOOL",
    "DecisionLogTools",
    "CliResult",
    "DeveloperTools",
    "build_cli_args",
    "parse_cli_output",
    "ToolDispatcher",
    "ObservabilityTools",
    "RepositoryHost",
    "RepositoryTools",
    "FileSystemWikiStore",
    "WikiStore",
    "WikiTools",
]
