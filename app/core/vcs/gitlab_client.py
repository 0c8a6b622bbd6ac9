"""GitLab implementation of the VCS provider.

``project`` is the numeric project id or the ``group/name`` path (URL-encoded
here), ``request_id`` is the merge request IID.  Positional comments are
discussions carrying a three-SHA ``position`` taken from the MR's
``diff_refs``; the SHAs are returned inside the ``ChangeSet`` rather than
kept on the client, so one client can serve concurrent reviews.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from app.core.entities import ChangeSet, DiffAnchorContext, FileChange
from app.core.exceptions import DiffFetchError, VcsAPIError, VcsAuthError, VcsError
from app.core.vcs.base import ExistingComment, PositionedPayload, VcsProvider

logger = logging.getLogger(__name__)

GITLAB_API_BASE = "https://gitlab.com/api/v4"
PER_PAGE = 100
MAX_PAGES = 30


class GitLabClient(VcsProvider):
    """Async GitLab API client authenticated with a private/project token."""

    name = "gitlab"

    def __init__(
        self,
        token: str,
        *,
        api_base: str = GITLAB_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise VcsAuthError("GitLab client needs an API token — check GITLAB_TOKEN")
        self.token = token
        self.api_base = api_base.rstrip("/")
        self._transport = transport

    # ------------------------------------------------------------------
    #  Core request method
    # ------------------------------------------------------------------

    @staticmethod
    def _project_path(project: str) -> str:
        return f"/projects/{quote(str(project), safe='')}"

    def _mr_path(self, project: str, request_id: int) -> str:
        return f"{self._project_path(project)}/merge_requests/{request_id}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    path,
                    headers={"PRIVATE-TOKEN": self.token},
                    params=params,
                    json=json_body,
                )
        except httpx.HTTPError as exc:
            raise VcsAPIError(f"GitLab request {method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            raise VcsAuthError("GitLab rejected the token (401)")
        return response

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        if response.status_code >= 400:
            raise VcsAPIError(
                f"GET {path} failed: {response.text[:200]}", status_code=response.status_code
            )
        return response.json()

    async def _paginate(self, path: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            batch = await self._get_json(path, params={"per_page": PER_PAGE, "page": page})
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
        return items

    # ------------------------------------------------------------------
    #  Changed files
    # ------------------------------------------------------------------

    async def fetch_changed_files(self, project: str, request_id: int) -> ChangeSet:
        """Fetch MR changes with their diffs and the MR's ``diff_refs``."""
        mr_path = self._mr_path(project, request_id)
        try:
            mr = await self._get_json(mr_path)
            data = await self._get_json(f"{mr_path}/changes")
        except VcsAPIError as exc:
            if exc.status_code == 404:
                raise DiffFetchError(f"MR !{request_id} not found in project {project}") from exc
            raise DiffFetchError(f"Failed to fetch MR !{request_id} in {project}: {exc}") from exc
        except VcsError as exc:
            raise DiffFetchError(f"Failed to fetch MR !{request_id} in {project}: {exc}") from exc

        diff_refs = mr.get("diff_refs") or {}
        anchor = DiffAnchorContext(
            base_sha=diff_refs.get("base_sha"),
            start_sha=diff_refs.get("start_sha"),
            head_sha=diff_refs.get("head_sha"),
        )
        ref = anchor.head_sha or mr.get("source_branch") or data.get("source_branch") or ""

        files: list[FileChange] = []
        for change in data.get("changes", []):
            path = change.get("new_path", "")
            if change.get("deleted_file") or not change.get("diff"):
                logger.debug("Skipping file without reviewable diff", extra={"file": path})
                continue
            content = await self.get_file_content(project, path, ref)
            files.append(self.build_file_change(path, change["diff"], content))

        logger.info(
            "Fetched MR changes",
            extra={"project": project, "mr_iid": request_id, "files": len(files)},
        )
        return ChangeSet(files=files, anchor=anchor)

    async def get_file_content(self, project: str, file_path: str, ref: str) -> str:
        """Return raw file content at ``ref``, or ``""`` when unavailable."""
        path = f"{self._project_path(project)}/repository/files/{quote(file_path, safe='')}/raw"
        try:
            response = await self._request("GET", path, params={"ref": ref or "main"})
        except VcsError as exc:
            logger.warning("File content unavailable", extra={"file": file_path, "error": str(exc)})
            return ""

        if response.status_code >= 400:
            logger.warning(
                "File content unavailable",
                extra={"file": file_path, "status": response.status_code},
            )
            return ""
        return response.text

    # ------------------------------------------------------------------
    #  Existing notes
    # ------------------------------------------------------------------

    async def fetch_existing_comments(
        self, project: str, request_id: int
    ) -> list[ExistingComment]:
        """Return every user-authored note on the MR (system notes excluded)."""
        notes = await self._paginate(f"{self._mr_path(project, request_id)}/notes")
        return [
            ExistingComment(id=note["id"], body=note.get("body") or "", kind="note")
            for note in notes
            if not note.get("system")
        ]

    async def delete_comment(
        self, project: str, request_id: int, comment: ExistingComment
    ) -> bool:
        response = await self._request(
            "DELETE", f"{self._mr_path(project, request_id)}/notes/{comment.id}"
        )
        if not response.is_success:
            logger.warning(
                "GitLab refused note deletion",
                extra={"note_id": comment.id, "status": response.status_code},
            )
        return response.is_success

    # ------------------------------------------------------------------
    #  Submissions
    # ------------------------------------------------------------------

    async def submit_positioned_comment(
        self, project: str, request_id: int, payload: PositionedPayload
    ) -> bool:
        """Open a discussion anchored with the MR's base/start/head SHAs."""
        anchor = payload.anchor
        position: dict[str, Any] = {
            "base_sha": anchor.base_sha,
            "start_sha": anchor.start_sha or anchor.base_sha,
            "head_sha": anchor.head_sha,
            "position_type": "text",
            "new_path": payload.new_path,
            "new_line": payload.new_line,
        }
        if payload.old_line is not None:
            position["old_path"] = payload.old_path
            position["old_line"] = payload.old_line

        response = await self._request(
            "POST",
            f"{self._mr_path(project, request_id)}/discussions",
            json_body={"body": payload.body, "position": position},
        )
        if not response.is_success:
            logger.warning(
                "GitLab rejected positioned discussion",
                extra={
                    "project": project,
                    "mr_iid": request_id,
                    "file": payload.new_path,
                    "line": payload.new_line,
                    "status": response.status_code,
                    "response": response.text[:500],
                },
            )
        return response.is_success

    async def submit_plain_note(self, project: str, request_id: int, body: str) -> bool:
        response = await self._request(
            "POST", f"{self._mr_path(project, request_id)}/notes", json_body={"body": body}
        )
        return response.is_success

    async def submit_summary(self, project: str, request_id: int, text: str) -> bool:
        return await self.submit_plain_note(project, request_id, text)
