"""Review engine — runs one review of a merge/pull request end to end.

State machine per review::

    PENDING → IN_PROGRESS → COMPLETED
                          → FAILED

Steps inside IN_PROGRESS:
  1. Fetch changed files and the anchor context (failure → FAILED)
  2. Drop non-reviewable files
  3. Build the prompt and call the model (failure → FAILED)
  4. Normalize the model output (unsalvageable → FAILED)
  5. Delete earlier machine-authored comments (failures logged, skipped)
  6. Post each comment through the position resolver (failures counted)
  7. Post the summary
  8. COMPLETED

``run_review`` never raises: the caller always gets a ``ReviewOutcome``
whose ``status`` and ``summary`` describe what happened.
"""

from __future__ import annotations

import logging

from app.core.entities import ChangeSet, FileChange, ReviewOutcome, ReviewStatus
from app.core.exceptions import (
    CommentDeletionFailure,
    LLMError,
    PositionResolutionFailure,
    VcsError,
)
from app.core.filter_engine import get_reviewable_files
from app.core.llm.base import ModelProvider
from app.core.markers import format_summary_body, is_machine_authored
from app.core.normalizer import NormalizedResponse, normalize
from app.core.positioning import PositionResolver
from app.core.prompt import build_review_prompt
from app.core.vcs.base import VcsProvider
from app.models.store import ReviewStore

logger = logging.getLogger(__name__)

NO_REVIEWABLE_FILES_SUMMARY = "No reviewable files in this change — nothing to review."


class ReviewEngine:
    """Orchestrates one review per ``run_review`` call.

    Holds only collaborators; all per-review state lives in local variables
    and in the returned ``ReviewOutcome``, so concurrent reviews on one
    engine do not interfere.
    """

    def __init__(
        self,
        vcs: VcsProvider,
        model: ModelProvider,
        *,
        store: ReviewStore | None = None,
        resolver: PositionResolver | None = None,
        include_context: bool = False,
    ) -> None:
        self.vcs = vcs
        self.model = model
        self.store = store
        self.resolver = resolver or PositionResolver()
        self.include_context = include_context

    async def run_review(
        self, project: str, request_id: int, triggering_user: str
    ) -> ReviewOutcome:
        """Review ``request_id`` in ``project`` and post the findings."""
        outcome = ReviewOutcome(
            project_id=project,
            request_id=request_id,
            triggering_user=triggering_user,
            provider=self.vcs.name,
        )
        await self._save(outcome, created=True)

        try:
            return await self._execute(outcome)
        except Exception as exc:
            logger.exception("Review aborted by unexpected error", extra={"review_id": outcome.id})
            if not outcome.is_terminal:
                outcome.fail(f"Error: review aborted — {exc}")
            return await self._save(outcome)

    async def _execute(self, outcome: ReviewOutcome) -> ReviewOutcome:
        project, request_id = outcome.project_id, outcome.request_id
        log_extra = {"review_id": outcome.id, "project": project, "request_id": request_id}

        outcome.transition(ReviewStatus.IN_PROGRESS)
        await self._save(outcome)
        logger.info("Review started", extra={**log_extra, "user": outcome.triggering_user})

        try:
            change_set = await self.vcs.fetch_changed_files(project, request_id)
        except VcsError as exc:
            logger.error("Diff fetch failed: %s", exc, extra=log_extra)
            outcome.fail(f"Error: failed to fetch diff — {exc}")
            return await self._save(outcome)

        reviewable = set(get_reviewable_files([file.path for file in change_set.files]))
        files = [file for file in change_set.files if file.path in reviewable]
        if not files:
            outcome.summary = NO_REVIEWABLE_FILES_SUMMARY
            outcome.transition(ReviewStatus.COMPLETED)
            logger.info("Review skipped — no reviewable files", extra=log_extra)
            return await self._save(outcome)

        try:
            prompt = build_review_prompt(files, include_context=self.include_context)
            raw_output = await self.model.complete(prompt)
            response = normalize(raw_output, files, include_context=self.include_context)
        except LLMError as exc:
            logger.error("Model review failed: %s", exc, extra=log_extra)
            outcome.fail(f"Error: AI review failed — {exc}")
            return await self._save(outcome)

        await self.clear_previous_comments(project, request_id)
        await self._post(outcome, change_set, files, response)

        outcome.comments = list(response.comments)
        outcome.summary = response.summary
        outcome.transition(ReviewStatus.COMPLETED)
        logger.info(
            "Review completed",
            extra={
                **log_extra,
                "parse_outcome": str(response.outcome),
                "comments": len(response.comments),
                "posted": outcome.posted_count,
                "failed": outcome.failed_count,
            },
        )
        return await self._save(outcome)

    # ------------------------------------------------------------------
    #  Idempotency
    # ------------------------------------------------------------------

    async def clear_previous_comments(self, project: str, request_id: int) -> int:
        """Delete machine-authored comments left by earlier runs.

        Returns the number of comments deleted.  Never raises.
        """
        try:
            existing = await self.vcs.fetch_existing_comments(project, request_id)
        except VcsError as exc:
            logger.warning(
                "Could not list existing comments — skipping cleanup: %s",
                exc,
                extra={"project": project, "request_id": request_id},
            )
            return 0

        stale = [comment for comment in existing if is_machine_authored(comment.body)]
        deleted = 0
        for comment in stale:
            try:
                if not await self.vcs.delete_comment(project, request_id, comment):
                    raise CommentDeletionFailure(f"Provider refused to delete comment {comment.id}")
                deleted += 1
            except VcsError as exc:
                logger.warning(
                    "Failed to delete previous comment: %s",
                    exc,
                    extra={"comment_id": comment.id, "request_id": request_id},
                )

        logger.info(
            "Cleared previous machine-authored comments",
            extra={"project": project, "request_id": request_id, "found": len(stale), "deleted": deleted},
        )
        return deleted

    # ------------------------------------------------------------------
    #  Posting
    # ------------------------------------------------------------------

    async def _post(
        self,
        outcome: ReviewOutcome,
        change_set: ChangeSet,
        files: list[FileChange],
        response: NormalizedResponse,
    ) -> None:
        by_path = {file.path: file for file in files}

        for comment in response.comments:
            try:
                placement = await self.resolver.submit(
                    self.vcs,
                    outcome.project_id,
                    outcome.request_id,
                    comment,
                    change_set.anchor,
                    by_path.get(comment.file_path),
                )
            except PositionResolutionFailure as exc:
                outcome.failed_count += 1
                logger.error(
                    "Comment dropped: %s",
                    exc,
                    extra={"review_id": outcome.id, "file": comment.file_path, "line": comment.line_number},
                )
                continue
            outcome.posted_count += 1
            logger.debug(
                "Comment posted",
                extra={"file": comment.file_path, "line": comment.line_number, "placement": str(placement)},
            )

        try:
            if not await self.vcs.submit_summary(
                outcome.project_id, outcome.request_id, format_summary_body(response.summary)
            ):
                logger.warning("Provider rejected review summary", extra={"review_id": outcome.id})
        except VcsError as exc:
            logger.warning(
                "Failed to post review summary: %s", exc, extra={"review_id": outcome.id}
            )

    # ------------------------------------------------------------------
    #  Persistence
    # ------------------------------------------------------------------

    async def _save(self, outcome: ReviewOutcome, *, created: bool = False) -> ReviewOutcome:
        if self.store is None:
            return outcome
        try:
            if created:
                await self.store.create(outcome)
            else:
                await self.store.update(outcome)
        except Exception:
            # Store failures never change the review status.
            logger.exception("Failed to persist review", extra={"review_id": outcome.id})
        return outcome
