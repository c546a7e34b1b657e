"""Request-governance and agent-invocation engine.

Design overview
---------------

A request passes through four stages:

- ``trust.TrustClassifier`` assigns a trust level (static channel rules, or a
  cached permission lookup against the host repository).
- ``router.IntentRouter`` classifies the intent and picks a role.
- ``runtime.AgentInvoker`` runs the role's call/act loop with the LLM. Every
  tool call is gated by ``policy.PreToolUseHook``, dispatched through
  ``conversation.ConversationService`` or ``tools.ToolDispatcher``, and
  recorded by ``policy.PostToolUseHook``.
- ``policy.StopHook`` validates that significant actions were documented as
  decisions before the session completes.

Typical usage
-------------

Most applications should build a ``service.GovernanceService`` with
``factory.build_governance_service`` and call ``handle(request)``.

Import submodules directly; this package keeps no eager imports so the HTTP
adapters in ``governance_ai.clients`` can depend on ``agent_core.errors``.
"""
