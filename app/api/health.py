"""Health-check endpoint for container probes and load balancers."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.dependencies import get_review_store
from app.models.store import ReviewStore, SqlReviewStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(store: ReviewStore = Depends(get_review_store)) -> dict[str, str]:
    """Return 200 with the service status and the active review store backend."""
    backend = "sql" if isinstance(store, SqlReviewStore) else "memory"
    return {"status": "healthy", "store": backend}
