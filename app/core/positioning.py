"""Position resolver — places one review comment on the request.

Providers address diff lines differently (GitHub's line/side or legacy
diff position, GitLab's three-SHA discussion position).  The resolver
hides that behind one descending ladder, each rung tried only when the
previous one is unavailable or rejected:

1. Positional comment keyed by new path + new line.
2. Same call with the old path/line mirrored from the new side.
3. Plain note with the file path and line embedded in the body.

A comment is never silently dropped: if even the plain note fails,
``PositionResolutionFailure`` is raised for that comment alone.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from app.core.diff_parser import line_to_position_map
from app.core.entities import DiffAnchorContext, FileChange, ReviewComment
from app.core.exceptions import PositionResolutionFailure, VcsError
from app.core.markers import format_note_body, format_positioned_body
from app.core.vcs.base import PositionedPayload, VcsProvider

logger = logging.getLogger(__name__)


class Placement(StrEnum):
    POSITIONED = "positioned"
    POSITIONED_BOTH_SIDES = "positioned_both_sides"
    PLAIN_NOTE = "plain_note"


class PositionResolver:
    """Stateless; one instance may serve any number of concurrent reviews."""

    def resolve(
        self,
        comment: ReviewComment,
        anchor: DiffAnchorContext,
        file_change: FileChange | None,
    ) -> PositionedPayload | None:
        """Build the positional payload, or None when the anchor is incomplete."""
        if not anchor.is_complete:
            return None

        diff_position = None
        if file_change is not None:
            diff_position = line_to_position_map(list(file_change.changes)).get(
                comment.line_number
            )

        return PositionedPayload(
            body=format_positioned_body(comment),
            new_path=comment.file_path,
            new_line=comment.line_number,
            anchor=anchor,
            diff_position=diff_position,
        )

    async def submit(
        self,
        vcs: VcsProvider,
        project: str,
        request_id: int,
        comment: ReviewComment,
        anchor: DiffAnchorContext,
        file_change: FileChange | None = None,
    ) -> Placement:
        """Walk the ladder until one rung is accepted.

        Raises:
            PositionResolutionFailure: If the plain-note fallback also fails.
        """
        payload = self.resolve(comment, anchor, file_change)

        if payload is not None:
            for placement, attempt in (
                (Placement.POSITIONED, payload),
                (Placement.POSITIONED_BOTH_SIDES, payload.with_old_side()),
            ):
                if await self._try_positioned(vcs, project, request_id, attempt):
                    return placement
        else:
            logger.info(
                "Anchor context incomplete — posting as plain note",
                extra={"file": comment.file_path, "line": comment.line_number},
            )

        try:
            accepted = await vcs.submit_plain_note(project, request_id, format_note_body(comment))
        except VcsError as exc:
            raise PositionResolutionFailure(
                f"Plain note for {comment.file_path}:{comment.line_number} failed: {exc}"
            ) from exc
        if not accepted:
            raise PositionResolutionFailure(
                f"Plain note for {comment.file_path}:{comment.line_number} was rejected"
            )
        return Placement.PLAIN_NOTE

    @staticmethod
    async def _try_positioned(
        vcs: VcsProvider, project: str, request_id: int, payload: PositionedPayload
    ) -> bool:
        try:
            return await vcs.submit_positioned_comment(project, request_id, payload)
        except VcsError as exc:
            logger.warning(
                "Positioned comment failed",
                extra={"file": payload.new_path, "line": payload.new_line, "error": str(exc)},
            )
            return False
