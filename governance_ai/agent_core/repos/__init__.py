"""Persistence contracts and the SQLAlchemy implementation."""

from .interfaces import (
    AuditRepository,
    ChallengeRepository,
    ConversationThreadRepository,
    DecisionRepository,
    SessionRepository,
    WikiDraftRepository,
)
from .sql import (
    SqlAuditRepository,
    SqlChallengeRepository,
    SqlConversationThreadRepository,
    SqlDecisionRepository,
    SqlRepoBundle,
    SqlSessionRepository,
    SqlWikiDraftRepository,
    build_sql_repos,
    create_all,
    create_engine,
    create_sessionmaker,
)

__all__ = [
    "AuditRepository",
    "ChallengeRepository",
    "ConversationThreadRepository",
    "DecisionRepository",
    "SessionRepository",
    "WikiDraftRepository",
    "SqlAuditRepository",
    "SqlChallengeRepository",
    "SqlConversationThreadRepository",
    "SqlDecisionRepository",
    "SqlRepoBundle",
    "SqlSessionRepository",
    "SqlWikiDraftRepository",
    "build_sql_repos",
    "create_all",
    "create_engine",
    "create_sessionmaker",
]
