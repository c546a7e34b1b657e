from __future__ import annotations

"""Wiki tools and storage.

Agents read the project wiki freely but can only *propose* changes: every
edit or new page becomes a ``WikiDraft`` that a curator approves or rejects.
Approval publishes the draft to the ``WikiStore``; a publish failure leaves
the draft approved and is reported as ``published: false``.

``FileSystemWikiStore`` keeps one directory of markdown files per project,
which matches a local checkout of a GitHub wiki repository.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ..repos.interfaces import WikiDraftRepository
from ..schemas.domain import WikiDraft, WikiDraftType, WikiPage
from .base import BaseToolHandlerSet, Handler, ToolSpec, require, schema

logger = logging.getLogger(__name__)

LANDING_PAGE = "Home"

_TITLE_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


class WikiStore(Protocol):
    """Read and publish wiki pages for a project."""

    async def get_page(self, project_id: str, page_path: str) -> Optional[WikiPage]: ...

    async def search(self, project_id: str, query: str) -> List[WikiPage]: ...

    async def write_page(self, project_id: str, page_path: str, content: str, message: str) -> bool:
        """Publish content; returns False when the page could not be written."""
        ...


def _page_from_text(page_path: str, content: str, last_modified: Optional[datetime]) -> WikiPage:
    m = _TITLE_RE.search(content)
    title = m.group(1).strip() if m else page_path.replace("-", " ")
    body_lines = [ln.strip() for ln in content.splitlines() if ln.strip() and not ln.startswith("#")]
    summary = body_lines[0][:200] if body_lines else ""
    return WikiPage(path=page_path, title=title, content=content, last_modified=last_modified, summary=summary)


class FileSystemWikiStore:
    """Markdown files under ``<root>/<project_id>/<page_path>.md``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _file_for(self, project_id: str, page_path: str) -> Path:
        base = (self._root / project_id).resolve()
        target = (base / f"{page_path.strip('/')}.md").resolve()
        if base != target and base not in target.parents:
            raise ValueError(f"Page path escapes the wiki: {page_path}")
        return target

    def _read(self, project_id: str, page_path: str) -> Optional[WikiPage]:
        try:
            path = self._file_for(project_id, page_path)
        except ValueError:
            return None
        if not path.is_file():
            return None
        content = path.read_text(encoding="utf-8")
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        return _page_from_text(page_path, content, mtime)

    def _search(self, project_id: str, query: str) -> List[WikiPage]:
        base = self._root / project_id
        if not base.is_dir():
            return []
        needle = query.strip().lower()
        title_hits: List[WikiPage] = []
        body_hits: List[WikiPage] = []
        for file in sorted(base.rglob("*.md")):
            page_path = file.relative_to(base).with_suffix("").as_posix()
            page = self._read(project_id, page_path)
            if page is None:
                continue
            if needle in page.title.lower() or needle in page_path.lower():
                title_hits.append(page)
            elif needle in page.content.lower():
                body_hits.append(page)
        return title_hits + body_hits

    def _write(self, project_id: str, page_path: str, content: str) -> None:
        path = self._file_for(project_id, page_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def get_page(self, project_id: str, page_path: str) -> Optional[WikiPage]:
        return await asyncio.to_thread(self._read, project_id, page_path)

    async def search(self, project_id: str, query: str) -> List[WikiPage]:
        return await asyncio.to_thread(self._search, project_id, query)

    async def write_page(self, project_id: str, page_path: str, content: str, message: str) -> bool:
        try:
            await asyncio.to_thread(self._write, project_id, page_path, content)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to publish wiki page '{page_path}' for {project_id}: {e}")
            return False
        logger.info(f"Published wiki page '{page_path}' for {project_id}: {message}")
        return True


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


_PROPOSAL_PROPERTIES = {
    "project_id": {"type": "string", "description": "Project ID"},
    "page_path": {"type": "string", "description": "Path to page being edited"},
    "proposed_content": {"type": "string", "description": "New content for the page"},
    "edit_summary": {"type": "string", "description": "Summary of what changed and why"},
    "proposed_by": {"type": "string", "description": "Who is proposing this edit"},
}
_PROPOSAL_REQUIRED = ["project_id", "page_path", "proposed_content", "edit_summary", "proposed_by"]


@dataclass(frozen=True)
class WikiTools(BaseToolHandlerSet):
    drafts: WikiDraftRepository
    store: WikiStore
    name: str = "wiki"

    def tool_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                name="wiki_search",
                description="Search wiki pages for content",
                input_schema=schema(
                    {
                        "project_id": {"type": "string", "description": "Project ID"},
                        "query": {"type": "string", "description": "Search query"},
                    },
                    ["project_id", "query"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_get_page",
                description="Get a specific wiki page by path",
                input_schema=schema(
                    {
                        "project_id": {"type": "string", "description": "Project ID"},
                        "page_path": {"type": "string", "description": "Path to wiki page"},
                    },
                    ["project_id", "page_path"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_propose_edit",
                description=(
                    "Propose an edit to an existing wiki page. Requires curator approval before being published."
                ),
                input_schema=schema(_PROPOSAL_PROPERTIES, _PROPOSAL_REQUIRED),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_propose_page",
                description="Propose a new wiki page. Requires curator approval before being published.",
                input_schema=schema(_PROPOSAL_PROPERTIES, _PROPOSAL_REQUIRED),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_review_drafts",
                description="List pending wiki draft edits awaiting curator review. (Curator only)",
                input_schema=schema({"project_id": {"type": "string", "description": "Project ID"}}, ["project_id"]),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_approve_draft",
                description="Approve a wiki draft and publish it to the wiki. (Curator only)",
                input_schema=schema(
                    {
                        "draft_id": {"type": "string", "description": "Draft ID to approve"},
                        "reviewed_by": {"type": "string", "description": "Curator approving the draft"},
                        "feedback": {"type": "string", "description": "Optional feedback for the contributor"},
                    },
                    ["draft_id", "reviewed_by"],
                ),
                server=self.name,
            ),
            ToolSpec(
                name="wiki_reject_draft",
                description="Reject a wiki draft with feedback. (Curator only)",
                input_schema=schema(
                    {
                        "draft_id": {"type": "string", "description": "Draft ID to reject"},
                        "reviewed_by": {"type": "string", "description": "Curator rejecting the draft"},
                        "feedback": {"type": "string", "description": "Feedback explaining why it was rejected"},
                    },
                    ["draft_id", "reviewed_by", "feedback"],
                ),
                server=self.name,
            ),
        ]

    def handlers(self) -> Dict[str, Handler]:
        return {
            "wiki_search": self.wiki_search,
            "wiki_get_page": self.wiki_get_page,
            "wiki_propose_edit": self.wiki_propose_edit,
            "wiki_propose_page": self.wiki_propose_page,
            "wiki_review_drafts": self.wiki_review_drafts,
            "wiki_approve_draft": self.wiki_approve_draft,
            "wiki_reject_draft": self.wiki_reject_draft,
        }

    async def wiki_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = str(require(args, "query"))
        pages = await self.store.search(str(require(args, "project_id")), query)
        return {
            "query": query,
            "results": [
                {"path": p.path, "title": p.title, "summary": p.summary, "lastModified": _iso(p.last_modified)}
                for p in pages
            ],
            "total": len(pages),
        }

    async def wiki_get_page(self, args: Dict[str, Any]) -> Dict[str, Any]:
        page_path = str(require(args, "page_path"))
        page = await self.store.get_page(str(require(args, "project_id")), page_path)
        if page is None:
            return {
                "error": f"Page '{page_path}' not found",
                "message": "The wiki page does not exist. Use wiki_propose_page to create it.",
            }
        return {
            "path": page.path,
            "title": page.title,
            "content": page.content,
            "lastModified": _iso(page.last_modified),
            "modifiedBy": page.modified_by,
        }

    async def _propose(self, args: Dict[str, Any], draft_type: WikiDraftType) -> WikiDraft:
        project_id = str(require(args, "project_id"))
        page_path = str(require(args, "page_path"))
        original: Optional[str] = None
        if draft_type == WikiDraftType.edit_page:
            current = await self.store.get_page(project_id, page_path)
            original = current.content if current is not None else None
        return await self.drafts.create(
            WikiDraft(
                project=project_id,
                type=draft_type,
                page_path=page_path,
                proposed_content=str(require(args, "proposed_content")),
                original_content=original,
                proposed_by=str(require(args, "proposed_by")),
                edit_summary=str(args.get("edit_summary") or ""),
            )
        )

    async def wiki_propose_edit(self, args: Dict[str, Any]) -> Dict[str, Any]:
        draft = await self._propose(args, WikiDraftType.edit_page)
        return {
            "success": True,
            "draft_id": draft.id,
            "message": "Edit proposed successfully. Awaiting curator review.",
        }

    async def wiki_propose_page(self, args: Dict[str, Any]) -> Dict[str, Any]:
        draft = await self._propose(args, WikiDraftType.new_page)
        return {
            "success": True,
            "draft_id": draft.id,
            "message": "New page proposed successfully. Awaiting curator review.",
        }

    async def wiki_review_drafts(self, args: Dict[str, Any]) -> Dict[str, Any]:
        drafts = await self.drafts.get_pending(str(require(args, "project_id")))
        return {"pending_drafts": [d.model_dump(mode="json") for d in drafts]}

    async def wiki_approve_draft(self, args: Dict[str, Any]) -> Dict[str, Any]:
        reviewed_by = str(require(args, "reviewed_by"))
        draft = await self.drafts.approve(
            str(require(args, "draft_id")), reviewed_by=reviewed_by, feedback=args.get("feedback")
        )
        if draft is None:
            return {"error": "Draft not found"}

        try:
            published = await self.store.write_page(
                draft.project,
                draft.page_path,
                draft.proposed_content,
                f"{draft.edit_summary} (approved by {reviewed_by})",
            )
        except Exception as e:
            logger.error(f"Publishing draft {draft.id} failed: {e}")
            published = False

        return {
            "success": True,
            "published": published,
            "message": (
                "Draft approved and published to wiki"
                if published
                else "Draft approved but publishing to wiki failed; may need manual push"
            ),
            "draft": draft.model_dump(mode="json"),
        }

    async def wiki_reject_draft(self, args: Dict[str, Any]) -> Dict[str, Any]:
        draft = await self.drafts.reject(
            str(require(args, "draft_id")),
            reviewed_by=str(require(args, "reviewed_by")),
            feedback=str(require(args, "feedback")),
        )
        if draft is None:
            return {"error": "Draft not found"}
        return {"success": True, "message": "Draft rejected with feedback", "draft": draft.model_dump(mode="json")}
