from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema


class RepositoryHost(Protocol):
    """The subset of host-repository operations exposed as tools."""

    async def get_issue(self, repository: str, issue_number: int) -> Dict[str, Any]: ...

    async def get_pull_request(self, repository: str, pull_number: int) -> Dict[str, Any]: ...

    async def list_pr_files(self, repository: str, pull_number: int) -> List[Dict[str, Any]]: ...

    async def add_issue_comment(self, repository: str, issue_number: int, body: str) -> Dict[str, Any]: ...

    async def add_labels(self, repository: str, issue_number: int, labels: List[str]) -> List[Dict[str, Any]]: ...

    async def close_issue(self, repository: str, issue_number: int) -> Dict[str, Any]: ...

    async def merge_pull_request(
        self,
        repository: str,
        pull_number: int,
        *,
        commit_title: Optional[str] = None,
        commit_message: Optional[str] = None,
        merge_method: Optional[str] = None,
    ) -> Dict[str, Any]: ...


_ISSUE = {"issue_number": {"type": "number", "description": "Issue number"}}
_PULL = {"pull_number": {"type": "number", "description": "Pull request number"}}


def _summarize_files(files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    keys = ("filename", "status", "additions", "deletions", "changes")
    return [{k: f.get(k) for k in keys if k in f} for f in files]


@dataclass(frozen=True)
class RepositoryTools(BaseToolHandlerSet):
    """Issue and pull request operations on the project's host repository."""

    host: RepositoryHost
    repository: str
    name: str = "repository"

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                name="get_issue",
                description="Get an issue by number",
                input_schema=schema(dict(_ISSUE), ["issue_number"]),
                server=self.name,
            ),
            ToolSpec(
                name="get_pull_request",
                description="Get a pull request by number",
                input_schema=schema(dict(_PULL), ["pull_number"]),
                server=self.name,
            ),
            ToolSpec(
                name="list_pr_files",
                description="List files changed in a pull request",
                input_schema=schema(dict(_PULL), ["pull_number"]),
                server=self.name,
            ),
            ToolSpec(
                name="add_issue_comment",
                description="Comment on an issue or pull request",
                input_schema=schema(
                    {**_ISSUE, "body": {"type": "string", "description": "Comment body (markdown)"}},
                    ["issue_number", "body"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="add_labels",
                description="Add labels to an issue or pull request",
                input_schema=schema(
                    {**_ISSUE, "labels": {"type": "array", "items": {"type": "string"}, "description": "Labels to add"}},
                    ["issue_number", "labels"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="close_issue",
                description="Close an issue",
                input_schema=schema(dict(_ISSUE), ["issue_number"]),
                server=self.name,
            ),
            ToolSpec(
                name="merge_pull_request",
                description="Merge a pull request",
                input_schema=schema(
                    {
                        **_PULL,
                        "commit_title": {"type": "string", "description": "Merge commit title (optional)"},
                        "commit_message": {"type": "string", "description": "Merge commit message (optional)"},
                        "merge_method": {
                            "type": "string",
                            "enum": ["merge", "squash", "rebase"],
                            "description": "Merge method (optional)",
                        },
                    },
                    ["pull_number"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "get_issue": self.get_issue,
            "get_pull_request": self.get_pull_request,
            "list_pr_files": self.list_pr_files,
            "add_issue_comment": self.add_issue_comment,
            "add_labels": self.add_labels,
            "close_issue": self.close_issue,
            "merge_pull_request": self.merge_pull_request,
        }

    async def get_issue(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return await self.host.get_issue(self.repository, int(require(args, "issue_number")))

    async def get_pull_request(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return await self.host.get_pull_request(self.repository, int(require(args, "pull_number")))

    async def list_pr_files(self, args: Dict[str, Any]) -> Dict[str, Any]:
        files = await self.host.list_pr_files(self.repository, int(require(args, "pull_number")))
        return {"files": _summarize_files(list(files or [])), "total": len(files or [])}

    async def add_issue_comment(self, args: Dict[str, Any]) -> Dict[str, Any]:
        comment = await self.host.add_issue_comment(
            self.repository, int(require(args, "issue_number")), str(require(args, "body"))
        )
        return {"success": True, "comment_id": comment.get("id"), "url": comment.get("html_url")}

    async def add_labels(self, args: Dict[str, Any]) -> Dict[str, Any]:
        labels = [str(x) for x in require(args, "labels")]
        result = await self.host.add_labels(self.repository, int(require(args, "issue_number")), labels)
        return {"success": True, "labels": [lbl.get("name") for lbl in result or [] if isinstance(lbl, dict)]}

    async def close_issue(self, args: Dict[str, Any]) -> Dict[str, Any]:
        issue = await self.host.close_issue(self.repository, int(require(args, "issue_number")))
        return {"success": True, "number": issue.get("number"), "state": issue.get("state")}

    async def merge_pull_request(self, args: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.host.merge_pull_request(
            self.repository,
            int(require(args, "pull_number")),
            commit_title=args.get("commit_title"),
            commit_message=args.get("commit_message"),
            merge_method=args.get("merge_method"),
        )
        return {"success": bool(result.get("merged", True)), "sha": result.get("sha"), "message": result.get("message")}
