"""Review stores.

The review engine only needs create/get/update keyed by review id.
``InMemoryReviewStore`` serves development and tests; ``SqlReviewStore``
persists through SQLAlchemy when ``DATABASE_URL`` is set.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.entities import (
    CommentCategory,
    ReviewComment,
    ReviewOutcome,
    ReviewStatus,
    Severity,
)
from app.models.review import CommentRecord, ReviewRecord

logger = logging.getLogger(__name__)


class ReviewStore(ABC):
    @abstractmethod
    async def create(self, outcome: ReviewOutcome) -> ReviewOutcome: ...

    @abstractmethod
    async def get(self, review_id: str) -> ReviewOutcome | None: ...

    @abstractmethod
    async def update(self, outcome: ReviewOutcome) -> ReviewOutcome: ...

    @abstractmethod
    async def list_for_request(self, project_id: str, request_id: int) -> list[ReviewOutcome]:
        """Reviews of one merge/pull request, oldest first."""


class InMemoryReviewStore(ReviewStore):
    """Dict-backed store.  Stored outcomes are copies, like a real database."""

    def __init__(self) -> None:
        self._reviews: dict[str, ReviewOutcome] = {}

    async def create(self, outcome: ReviewOutcome) -> ReviewOutcome:
        self._reviews[outcome.id] = copy.deepcopy(outcome)
        return outcome

    async def get(self, review_id: str) -> ReviewOutcome | None:
        stored = self._reviews.get(review_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def update(self, outcome: ReviewOutcome) -> ReviewOutcome:
        if outcome.id not in self._reviews:
            raise KeyError(f"Review {outcome.id} not found")
        self._reviews[outcome.id] = copy.deepcopy(outcome)
        return outcome

    async def list_for_request(self, project_id: str, request_id: int) -> list[ReviewOutcome]:
        matches = [
            copy.deepcopy(review)
            for review in self._reviews.values()
            if review.project_id == project_id and review.request_id == request_id
        ]
        return sorted(matches, key=lambda review: review.created_at)


# ---------------------------------------------------------------------------
#  SQLAlchemy store
# ---------------------------------------------------------------------------


def _comment_records(outcome: ReviewOutcome) -> list[CommentRecord]:
    return [
        CommentRecord(
            ordinal=index,
            file_path=comment.file_path,
            line_number=comment.line_number,
            end_line_number=comment.end_line_number,
            category=str(comment.category),
            severity=str(comment.severity),
            text=comment.text,
        )
        for index, comment in enumerate(outcome.comments)
    ]


def _apply(record: ReviewRecord, outcome: ReviewOutcome) -> None:
    record.status = str(outcome.status)
    record.provider = outcome.provider
    record.summary = outcome.summary
    record.posted_count = outcome.posted_count
    record.failed_count = outcome.failed_count
    record.completed_at = outcome.completed_at
    record.comments = _comment_records(outcome)


def _to_outcome(record: ReviewRecord) -> ReviewOutcome:
    return ReviewOutcome(
        id=record.id,
        project_id=record.project_id,
        request_id=record.request_id,
        triggering_user=record.triggering_user,
        provider=record.provider,
        status=ReviewStatus(record.status),
        summary=record.summary,
        posted_count=record.posted_count,
        failed_count=record.failed_count,
        created_at=record.created_at,
        completed_at=record.completed_at,
        comments=[
            ReviewComment(
                file_path=c.file_path,
                line_number=c.line_number,
                end_line_number=c.end_line_number,
                category=CommentCategory(c.category),
                severity=Severity(c.severity),
                text=c.text,
            )
            for c in record.comments
        ],
    )


class SqlReviewStore(ReviewStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create(self, outcome: ReviewOutcome) -> ReviewOutcome:
        record = ReviewRecord(
            id=outcome.id,
            project_id=outcome.project_id,
            request_id=outcome.request_id,
            triggering_user=outcome.triggering_user,
            created_at=outcome.created_at,
        )
        _apply(record, outcome)
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        return outcome

    async def get(self, review_id: str) -> ReviewOutcome | None:
        async with self.session_factory() as session:
            record = await session.get(ReviewRecord, review_id)
            return _to_outcome(record) if record is not None else None

    async def update(self, outcome: ReviewOutcome) -> ReviewOutcome:
        async with self.session_factory() as session:
            record = await session.get(ReviewRecord, outcome.id)
            if record is None:
                raise KeyError(f"Review {outcome.id} not found")
            _apply(record, outcome)
            await session.commit()
        return outcome

    async def list_for_request(self, project_id: str, request_id: int) -> list[ReviewOutcome]:
        async with self.session_factory() as session:
            result = await session.scalars(
                select(ReviewRecord)
                .where(ReviewRecord.project_id == project_id, ReviewRecord.request_id == request_id)
                .order_by(ReviewRecord.created_at)
            )
            return [_to_outcome(record) for record in result.all()]
