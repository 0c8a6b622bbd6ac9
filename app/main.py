"""FastAPI application entry point.

Start with:
    uvicorn app.main:app --reload

- Lifespan events pick the review store (SQL when DATABASE_URL is set)
- CORS middleware configured
- Router includes for webhooks, manual reviews, and health
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.models.database import close_db, init_db
from app.models.store import InMemoryReviewStore, SqlReviewStore

assert sys.version_info >= (3, 12), "ReviewBridge requires Python 3.12+"

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
#  Lifespan: startup / shutdown
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize and tear down shared resources."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("ReviewBridge starting up")

    if settings.database_url:
        session_factory = await init_db(settings.database_url)
        app.state.review_store = SqlReviewStore(session_factory)
    else:
        logger.info("DATABASE_URL not set — review outcomes are kept in memory")
        app.state.review_store = InMemoryReviewStore()

    yield

    logger.info("ReviewBridge shutting down")
    await close_db()


# ---------------------------------------------------------------------------
#  FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ReviewBridge",
    description="AI code review for GitHub pull requests and GitLab merge requests",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for the manual review API.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
#  Router Registration
# ---------------------------------------------------------------------------

from app.api.webhooks import router as webhook_router  # noqa: E402
from app.api.reviews import router as reviews_router  # noqa: E402
from app.api.health import router as health_router  # noqa: E402

app.include_router(webhook_router, prefix="/api/webhooks")
app.include_router(reviews_router, prefix="/api/reviews")
app.include_router(health_router)
