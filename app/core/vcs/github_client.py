"""GitHub implementation of the VCS provider.

Wraps the GitHub REST API with:
- Personal-token or GitHub App installation-token authentication
- Paginated fetching of PR files, issue comments and review comments
- Line-anchored review comments (``line``/``side``) with a fallback to the
  legacy diff ``position`` addressing
- Rate limit monitoring and a single token refresh on 403

All methods use ``httpx.AsyncClient``.  ``project`` is ``owner/repo`` and
``request_id`` is the pull request number.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from app.core.entities import ChangeSet, DiffAnchorContext, FileChange
from app.core.exceptions import (
    DiffFetchError,
    VcsAPIError,
    VcsAuthError,
    VcsError,
    VcsRateLimitError,
)
from app.core.vcs.base import ExistingComment, PositionedPayload, VcsProvider
from app.core.vcs.github_auth import GITHUB_API_BASE, GITHUB_API_VERSION, GitHubAppAuth

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PAGES = 30

# Common headers for every GitHub API request.
_BASE_HEADERS: dict[str, str] = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": GITHUB_API_VERSION,
}

ISSUE_COMMENT = "issue"
REVIEW_COMMENT = "review"


class GitHubClient(VcsProvider):
    """Async GitHub API client.

    Authenticates with ``token`` when given, otherwise with an installation
    token obtained through ``app_auth`` for ``installation_id``.
    """

    name = "github"

    def __init__(
        self,
        token: str = "",
        *,
        app_auth: GitHubAppAuth | None = None,
        installation_id: int | None = None,
        api_base: str = GITHUB_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token and (app_auth is None or installation_id is None):
            raise VcsAuthError("GitHub client needs a token or App credentials with an installation id")
        self.token = token
        self.app_auth = app_auth
        self.installation_id = installation_id
        self.api_base = api_base.rstrip("/")
        self._transport = transport

    # ------------------------------------------------------------------
    #  Core request method
    # ------------------------------------------------------------------

    async def _access_token(self) -> str:
        if self.token:
            return self.token
        assert self.app_auth is not None and self.installation_id is not None
        return await self.app_auth.installation_token(self.installation_id)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        accept: str | None = None,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated GitHub API request with one token refresh on 403."""
        request_headers = {
            "Authorization": f"Bearer {await self._access_token()}",
            **_BASE_HEADERS,
        }
        if accept:
            request_headers["Accept"] = accept

        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.request(
                    method, path, headers=request_headers, params=params, json=json_body
                )
                self._check_rate_limit(response)

                if response.status_code == 403:
                    if response.headers.get("X-RateLimit-Remaining") == "0":
                        reset_at = response.headers.get("X-RateLimit-Reset", "")
                        raise VcsRateLimitError(
                            f"Rate limit exceeded. Resets at: {reset_at}", reset_at=reset_at
                        )
                    if self.app_auth is not None and self.installation_id is not None:
                        # Installation token may be revoked — refresh once.
                        logger.warning(
                            "GitHub 403 — invalidating cached token and retrying",
                            extra={"installation_id": self.installation_id},
                        )
                        self.app_auth.invalidate(self.installation_id)
                        request_headers["Authorization"] = f"Bearer {await self._access_token()}"
                        response = await client.request(
                            method, path, headers=request_headers, params=params, json=json_body
                        )
        except httpx.HTTPError as exc:
            raise VcsAPIError(f"GitHub request {method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            raise VcsAuthError("GitHub rejected the credentials (401)")
        return response

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """Log rate limit status when it runs low."""
        remaining_str = response.headers.get("X-RateLimit-Remaining")
        if remaining_str is None or not remaining_str.isdigit():
            return

        remaining = int(remaining_str)
        if remaining < 100:
            reset_ts = int(response.headers.get("X-RateLimit-Reset", 0) or 0)
            logger.warning(
                "GitHub rate limit low",
                extra={
                    "remaining": remaining,
                    "limit": response.headers.get("X-RateLimit-Limit"),
                    "resets_in_seconds": max(0, reset_ts - int(time.time())),
                },
            )

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
        """Fetch every non-removed file with a patch, plus the PR's base/head SHAs."""
        try:
            pr = await self._get_json(f"/repos/{project}/pulls/{request_id}")
            raw_files = await self._paginate(f"/repos/{project}/pulls/{request_id}/files")
        except VcsAPIError as exc:
            if exc.status_code == 404:
                raise DiffFetchError(f"PR #{request_id} not found in {project}") from exc
            raise DiffFetchError(f"Failed to fetch PR #{request_id} in {project}: {exc}") from exc
        except VcsError as exc:
            raise DiffFetchError(f"Failed to fetch PR #{request_id} in {project}: {exc}") from exc

        head_sha: str | None = pr.get("head", {}).get("sha")
        base_sha: str | None = pr.get("base", {}).get("sha")

        files: list[FileChange] = []
        for raw in raw_files:
            path = raw.get("filename", "")
            patch = raw.get("patch")
            if raw.get("status") == "removed" or not patch:
                # Removed files cannot be commented on; no patch means binary or too large.
                logger.debug("Skipping file without reviewable patch", extra={"file": path})
                continue
            content = await self.get_file_content(project, path, head_sha or "")
            files.append(self.build_file_change(path, patch, content))

        logger.info(
            "Fetched PR files",
            extra={"repo": project, "pr_number": request_id, "files": len(files)},
        )
        return ChangeSet(
            files=files,
            anchor=DiffAnchorContext(base_sha=base_sha, start_sha=base_sha, head_sha=head_sha),
        )

    async def get_file_content(self, project: str, file_path: str, ref: str) -> str:
        """Return raw file content at ``ref``, or ``""`` when unavailable."""
        try:
            response = await self._request(
                "GET",
                f"/repos/{project}/contents/{quote(file_path, safe='/')}",
                accept="application/vnd.github.raw",
                params={"ref": ref} if ref else None,
            )
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
    #  Existing comments
    # ------------------------------------------------------------------

    async def fetch_existing_comments(
        self, project: str, request_id: int
    ) -> list[ExistingComment]:
        """Return issue comments and line review comments on the PR."""
        issue_comments = await self._paginate(f"/repos/{project}/issues/{request_id}/comments")
        review_comments = await self._paginate(f"/repos/{project}/pulls/{request_id}/comments")
        return [
            ExistingComment(id=c["id"], body=c.get("body") or "", kind=ISSUE_COMMENT)
            for c in issue_comments
        ] + [
            ExistingComment(id=c["id"], body=c.get("body") or "", kind=REVIEW_COMMENT)
            for c in review_comments
        ]

    async def delete_comment(
        self, project: str, request_id: int, comment: ExistingComment
    ) -> bool:
        family = "pulls" if comment.kind == REVIEW_COMMENT else "issues"
        response = await self._request("DELETE", f"/repos/{project}/{family}/comments/{comment.id}")
        if not response.is_success:
            logger.warning(
                "GitHub refused comment deletion",
                extra={"comment_id": comment.id, "status": response.status_code},
            )
        return response.is_success

    # ------------------------------------------------------------------
    #  Submissions
    # ------------------------------------------------------------------

    async def submit_positioned_comment(
        self, project: str, request_id: int, payload: PositionedPayload
    ) -> bool:
        """Post a review comment on the PR's head commit.

        Without an old side the comment is addressed by ``line`` on the
        RIGHT side.  With the old side populated it falls back to the legacy
        diff ``position``, which GitHub resolves against both sides.
        """
        body: dict[str, Any] = {
            "body": payload.body,
            "commit_id": payload.anchor.head_sha,
            "path": payload.new_path,
        }
        if payload.old_line is None:
            body.update({"line": payload.new_line, "side": "RIGHT"})
        elif payload.diff_position is not None:
            body["position"] = payload.diff_position
        else:
            logger.debug(
                "No diff position for line — skipping position addressing",
                extra={"file": payload.new_path, "line": payload.new_line},
            )
            return False

        response = await self._request(
            "POST", f"/repos/{project}/pulls/{request_id}/comments", json_body=body
        )
        if response.status_code == 422:
            logger.warning(
                "GitHub rejected review comment — likely invalid position",
                extra={
                    "repo": project,
                    "pr_number": request_id,
                    "file": payload.new_path,
                    "line": payload.new_line,
                    "response": response.text[:500],
                },
            )
        return response.is_success

    async def submit_plain_note(self, project: str, request_id: int, body: str) -> bool:
        response = await self._request(
            "POST", f"/repos/{project}/issues/{request_id}/comments", json_body={"body": body}
        )
        return response.is_success

    async def submit_summary(self, project: str, request_id: int, text: str) -> bool:
        return await self.submit_plain_note(project, request_id, text)
