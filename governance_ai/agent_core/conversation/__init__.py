from .service import (
    CONVERSE_TOOL,
    MAX_CONVERSATION_DEPTH,
    SEND_TOOL,
    ConversationLocks,
    ConversationService,
    IssueCreator,
    type_label,
)

__all__ = [
    "CONVERSE_TOOL",
    "MAX_CONVERSATION_DEPTH",
    "SEND_TOOL",
    "ConversationLocks",
    "ConversationService",
    "IssueCreator",
    "type_label",
]
