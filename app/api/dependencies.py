"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from app.models.store import InMemoryReviewStore, ReviewStore


def get_review_store(request: Request) -> ReviewStore:
    """Return the app-wide review store, falling back to an in-memory one.

    The lifespan installs a SQL store when ``DATABASE_URL`` is set.
    """
    store = getattr(request.app.state, "review_store", None)
    if store is None:
        store = InMemoryReviewStore()
        request.app.state.review_store = store
    return store
