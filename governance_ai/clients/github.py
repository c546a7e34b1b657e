from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..agent_core.errors import PermissionLookupError
from .errors import GitHubApiError


@dataclass(frozen=True)
class CreatedIssue:
    number: int
    url: str


class GitHubClient:
    """
    Thin async HTTP client for the GitHub REST API.

    Responsibilities:
    - collaborator permission lookups (trust classification)
    - issue creation (agent notifications)
    - the issue/pull request operations exposed as repository tools

    ``repository`` arguments are ``owner/name`` strings. Failures raise
    ``GitHubApiError`` with the response status and body, except
    ``get_collaborator_permission`` which raises ``PermissionLookupError`` so
    the trust classifier can fall back safely.
    """

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        *,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _repo_url(self, repository: str, path: str) -> str:
        return f"{self.base_url}/repos/{repository.strip('/')}{path}"

    async def _request(self, method: str, url: str, *, op: str, json: Optional[Any] = None) -> Any:
        try:
            self._logger.debug("GitHubClient.%s: %s %s", op, method, url)
            r = await self._client.request(method, url, headers=self._headers(), json=json)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GitHubApiError(
                f"GitHub {op} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise GitHubApiError(f"GitHub {op} failed: {e}") from e
        if not r.content:
            return {}
        return r.json()

    async def get_collaborator_permission(self, repository: str, username: str) -> str:
        url = self._repo_url(repository, f"/collaborators/{username}/permission")
        try:
            data = await self._request("GET", url, op="get_collaborator_permission")
        except GitHubApiError as e:
            if e.status_code == 404:
                return "none"
            raise PermissionLookupError(str(e)) from e
        return str((data or {}).get("permission") or "none")

    async def create_issue(self, repository: str, title: str, body: str, labels: List[str]) -> CreatedIssue:
        data = await self._request(
            "POST",
            self._repo_url(repository, "/issues"),
            op="create_issue",
            json={"title": title, "body": body, "labels": list(labels)},
        )
        return CreatedIssue(number=int(data["number"]), url=str(data.get("html_url") or data.get("url") or ""))

    async def get_issue(self, repository: str, issue_number: int) -> Dict[str, Any]:
        return await self._request("GET", self._repo_url(repository, f"/issues/{int(issue_number)}"), op="get_issue")

    async def get_pull_request(self, repository: str, pull_number: int) -> Dict[str, Any]:
        return await self._request(
            "GET", self._repo_url(repository, f"/pulls/{int(pull_number)}"), op="get_pull_request"
        )

    async def list_pr_files(self, repository: str, pull_number: int) -> List[Dict[str, Any]]:
        return await self._request(
            "GET", self._repo_url(repository, f"/pulls/{int(pull_number)}/files"), op="list_pr_files"
        )

    async def add_issue_comment(self, repository: str, issue_number: int, body: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._repo_url(repository, f"/issues/{int(issue_number)}/comments"),
            op="add_issue_comment",
            json={"body": body},
        )

    async def add_labels(self, repository: str, issue_number: int, labels: List[str]) -> List[Dict[str, Any]]:
        return await self._request(
            "POST",
            self._repo_url(repository, f"/issues/{int(issue_number)}/labels"),
            op="add_labels",
            json={"labels": list(labels)},
        )

    async def close_issue(self, repository: str, issue_number: int) -> Dict[str, Any]:
        return await self._request(
            "PATCH",
            self._repo_url(repository, f"/issues/{int(issue_number)}"),
            op="close_issue",
            json={"state": "closed"},
        )

    async def merge_pull_request(
        self,
        repository: str,
        pull_number: int,
        *,
        commit_title: Optional[str] = None,
        commit_message: Optional[str] = None,
        merge_method: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            k: v
            for k, v in {
                "commit_title": commit_title,
                "commit_message": commit_message,
                "merge_method": merge_method,
            }.items()
            if v is not None
        }
        return await self._request(
            "PUT",
            self._repo_url(repository, f"/pulls/{int(pull_number)}/merge"),
            op="merge_pull_request",
            json=payload,
        )
