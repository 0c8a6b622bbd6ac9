"""Review and comment ORM models.

Column types are portable (no dialect-specific JSONB/UUID) so the same
schema runs on PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.database import Base


class ReviewRecord(Base):
    """One record per review run."""

    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(500), nullable=False)
    request_id: Mapped[int] = mapped_column(Integer, nullable=False)
    triggering_user: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # pending|in_progress|completed|failed
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    posted_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    comments: Mapped[list["CommentRecord"]] = relationship(
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="CommentRecord.ordinal",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_reviews_project_request", "project_id", "request_id"),
        Index("ix_reviews_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewRecord id={self.id:.8} project={self.project_id!r} "
            f"request=#{self.request_id} status={self.status!r}>"
        )


class CommentRecord(Base):
    """A normalized comment belonging to one review, in normalization order."""

    __tablename__ = "review_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    end_line_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # bug|security|performance|style|maintenance|other
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # critical|major|minor|info
    text: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationship
    review: Mapped["ReviewRecord"] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_review_comments_review_id", "review_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<CommentRecord review={self.review_id:.8} file={self.file_path!r} "
            f"line={self.line_number} severity={self.severity!r}>"
        )
