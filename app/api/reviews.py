"""Manual review endpoints.

POST /api/reviews       — run a review now and return its outcome
GET  /api/reviews/{id}  — fetch a stored outcome
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_review_store
from app.api.schemas import CreateReviewRequest, ReviewOutcomeResponse
from app.config import Settings, get_settings
from app.core.exceptions import ConfigurationError
from app.core.factory import build_engine
from app.models.store import ReviewStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"])


@router.post("", status_code=201, response_model=ReviewOutcomeResponse)
async def create_review(
    body: CreateReviewRequest,
    config: Settings = Depends(get_settings),
    store: ReviewStore = Depends(get_review_store),
) -> ReviewOutcomeResponse:
    """Run a review synchronously.

    Failed reviews are still returned with 201: the outcome's ``status``
    and ``summary`` carry the failure.

    Raises:
        HTTPException(400): if the requested providers are not configured.
    """
    try:
        engine = build_engine(
            config,
            body.vcs,
            store=store,
            ai_provider=body.ai_provider,
            ai_model=body.ai_model,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    outcome = await engine.run_review(body.project_id, body.request_id, body.user_id)
    return ReviewOutcomeResponse.from_outcome(outcome)


@router.get("/{review_id}", response_model=ReviewOutcomeResponse)
async def get_review(
    review_id: str,
    store: ReviewStore = Depends(get_review_store),
) -> ReviewOutcomeResponse:
    outcome = await store.get(review_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return ReviewOutcomeResponse.from_outcome(outcome)
