from __future__ import annotations

"""Trust classification for inbound requests.

``TrustClassifier`` assigns one of the ordered ``TrustLevel`` tiers to a
request based on the channel it arrived through and, for GitHub webhooks, the
sender's collaborator permission on the project repository.

Permission lookups are cached per ``(project, identity)`` in an explicit
``TTLCache`` whose clock is injectable so expiry can be tested without
sleeping. A failed or missing lookup never yields more trust than the static
fallback for the request.
"""

import logging
import time
from typing import Callable, Dict, Generic, Hashable, Optional, Protocol, Tuple, TypeVar

from .errors import PermissionLookupError
from .schemas.config import ProjectConfig
from .schemas.domain import Channel, GovernanceRequest, TrustLevel

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

PERMISSION_TRUST: Dict[str, TrustLevel] = {
    "admin": TrustLevel.elevated,
    "maintain": TrustLevel.elevated,
    "write": TrustLevel.authorized,
    "triage": TrustLevel.contributor,
    "read": TrustLevel.contributor,
    "none": TrustLevel.anonymous,
}


class TTLCache(Generic[K, V]):
    """A small mapping whose entries expire ``ttl_seconds`` after being set."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[K, Tuple[float, V]] = {}

    def get(self, key: K) -> Optional[V]:
        item = self._entries.get(key)
        if item is None:
            return None
        expires_at, value = item
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: K, value: V) -> None:
        self._entries[key] = (self._clock() + self._ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class PermissionLookup(Protocol):
    """Resolve a user's permission on a host repository."""

    async def get_collaborator_permission(self, repository: str, username: str) -> str:
        """
        Return the raw permission string (``admin``, ``maintain``, ``write``,
        ``triage``, ``read`` or ``none``).

        Raises:
            PermissionLookupError: If the permission cannot be determined.
        """
        ...


def permission_to_trust(permission: Optional[str]) -> TrustLevel:
    """Map a host-repository permission to a trust level; unknown maps to anonymous."""
    return PERMISSION_TRUST.get((permission or "").strip().lower(), TrustLevel.anonymous)


def _fallback_trust(request: GovernanceRequest) -> TrustLevel:
    return TrustLevel.contributor if request.source.identity else TrustLevel.anonymous


class TrustClassifier:
    """Assign trust levels to requests.

    Args:
        lookup: Optional permission lookup used for GitHub webhook senders.
        projects: Project configurations by id, used to find the repository
            for a webhook request's project.
        ttl_seconds: Cache lifetime for permission lookups.
        clock: Monotonic clock used by the cache.
    """

    def __init__(
        self,
        *,
        lookup: Optional[PermissionLookup] = None,
        projects: Optional[Dict[str, ProjectConfig]] = None,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lookup = lookup
        self._projects: Dict[str, ProjectConfig] = dict(projects or {})
        self._cache: TTLCache[Tuple[str, str], TrustLevel] = TTLCache(ttl_seconds, clock=clock)

    def register_project(self, project: ProjectConfig) -> None:
        self._projects[project.id] = project

    def cache_clear(self) -> None:
        self._cache.clear()

    def classify_sync(self, request: GovernanceRequest) -> TrustLevel:
        """Classify from static channel rules only; never performs a lookup."""
        channel = Channel(request.source.channel)
        if channel == Channel.admin_cli:
            return TrustLevel.elevated
        if channel == Channel.public_api:
            return TrustLevel.anonymous
        return _fallback_trust(request)

    async def classify(self, request: GovernanceRequest) -> TrustLevel:
        """
        Classify a request.

        Only GitHub webhook requests with an identity consult the permission
        lookup; every other case is decided by ``classify_sync``.

        Returns:
            The assigned trust level.
        """
        channel = Channel(request.source.channel)
        identity = request.source.identity
        if channel != Channel.github_webhook or not identity:
            return self.classify_sync(request)

        fallback = _fallback_trust(request)
        if self._lookup is None:
            logger.warning(f"No permission lookup configured; '{identity}' classified as {fallback.value}")
            return fallback

        key = (request.project, identity)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        project = self._projects.get(request.project)
        repository = project.repository if project is not None else ""
        if not repository:
            logger.warning(f"No repository configured for project '{request.project}'; using fallback trust")
            return fallback

        try:
            permission = await self._lookup.get_collaborator_permission(repository, identity)
        except PermissionLookupError as e:
            logger.warning(f"Permission lookup failed for '{identity}' on {repository}: {e}")
            return fallback
        except Exception as e:
            logger.warning(f"Unexpected permission lookup error for '{identity}' on {repository}: {e}")
            return fallback

        level = permission_to_trust(permission)
        self._cache.set(key, level)
        logger.debug(f"Classified '{identity}' on {repository} as {level.value} (permission={permission})")
        return level
