"""HTTP adapters for external services (GitHub REST API, embeddings)."""

from .embeddings import HttpEmbeddingProvider
from .errors import ClientApiError, EmbeddingApiError, GitHubApiError
from .github import CreatedIssue, GitHubClient

__all__ = [
    "HttpEmbeddingProvider",
    "ClientApiError",
    "EmbeddingApiError",
    "GitHubApiError",
    "CreatedIssue",
    "GitHubClient",
]
