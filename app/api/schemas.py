"""Request/response bodies for the review API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.core.entities import ReviewOutcome


class CreateReviewRequest(BaseModel):
    project_id: str = Field(min_length=1, examples=["12345", "owner/repo"])
    request_id: int = Field(gt=0, description="Merge request IID or pull request number")
    user_id: str = Field(min_length=1)
    vcs: Literal["github", "gitlab"] = "gitlab"
    ai_provider: Literal["anthropic", "openai"] | None = None
    ai_model: str | None = None


class ReviewCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_path: str
    line_number: int
    end_line_number: int | None = None
    category: str
    severity: str
    text: str


class ReviewOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    request_id: int
    triggering_user: str
    provider: str
    status: str
    comments: list[ReviewCommentResponse]
    summary: str | None
    posted_count: int
    failed_count: int
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_outcome(cls, outcome: ReviewOutcome) -> ReviewOutcomeResponse:
        return cls.model_validate(outcome)
