"""governance-ai.

Governance engine for autonomous LLM agents acting on behalf of a software
project.

Core subpackages
----------------

- ``governance_ai.agent_core``:

  - Trust classification and intent routing.
  - Policy hooks (pre-tool-use, post-tool-use, stop) and constraint evaluators.
  - Tool dispatch over in-process handler sets and MCP servers.
  - Agent-to-agent conversations with a bounded nesting depth.
  - A LangGraph-based agent invoker.
  - Repository interfaces and SQL implementations for persistence.

- ``governance_ai.mcp_client``: connections to external MCP tool servers.
- ``governance_ai.clients``: HTTP adapters (GitHub REST API, embeddings).
- ``governance_ai.core``: settings and logging.
"""
