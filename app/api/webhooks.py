"""Webhook receivers.

POST /api/webhooks/github — GitHub App / repository webhooks
POST /api/webhooks/gitlab — GitLab project webhooks

Each handler:
  1. Reads the raw body and verifies it (before JSON parsing)
  2. Parses the payload
  3. Runs the gatekeeper filter
  4. Schedules the review as a background task
  5. Returns immediately
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request

from app.api.dependencies import get_review_store
from app.config import Settings, get_settings
from app.core.exceptions import ConfigurationError
from app.core.factory import VcsKind, build_engine
from app.core.filter_engine import FilterEngine
from app.core.security import verify_github_signature, verify_gitlab_token
from app.models.store import ReviewStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

_filter_engine = FilterEngine()


def _schedule_review(
    background_tasks: BackgroundTasks,
    config: Settings,
    store: ReviewStore,
    vcs: VcsKind,
    project: str,
    request_id: int,
    user: str,
    installation_id: int | None = None,
) -> dict[str, str]:
    try:
        engine = build_engine(config, vcs, store=store, installation_id=installation_id)
    except ConfigurationError as exc:
        logger.error("Cannot review — %s", exc, extra={"vcs": vcs, "project": project})
        return {"status": "ignored", "reason": str(exc)}

    background_tasks.add_task(engine.run_review, project, request_id, user)
    logger.info(
        "Review scheduled",
        extra={"vcs": vcs, "project": project, "request_id": request_id, "user": user},
    )
    return {"status": "accepted"}


@router.post("/github", status_code=200)
async def receive_github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_hub_signature_256: str | None = Header(default=None),
    x_github_event: str = Header(default="unknown"),
    x_github_delivery: str = Header(default=""),
    config: Settings = Depends(get_settings),
    store: ReviewStore = Depends(get_review_store),
) -> dict[str, str]:
    """Receive a GitHub webhook and schedule a review for PR events.

    Raises:
        HTTPException(403): if signature is missing or invalid.
    """
    # Raw body first — the signature covers the exact bytes.
    body = await request.body()
    verify_github_signature(body, config.github_webhook_secret, x_hub_signature_256)

    payload: dict[str, Any] = json.loads(body)
    logger.info(
        "GitHub webhook received",
        extra={
            "event": x_github_event,
            "action": payload.get("action", ""),
            "delivery_id": x_github_delivery,
        },
    )

    if x_github_event != "pull_request":
        return {"status": "ignored", "reason": f"event {x_github_event!r} not handled"}

    result = _filter_engine.should_review_github(payload)
    if not result.should_process:
        return {"status": "ignored", "reason": result.reason}

    pr = payload.get("pull_request", {})
    return _schedule_review(
        background_tasks,
        config,
        store,
        "github",
        project=payload.get("repository", {}).get("full_name", ""),
        request_id=pr.get("number", 0),
        user=payload.get("sender", {}).get("login") or pr.get("user", {}).get("login", "system"),
        installation_id=payload.get("installation", {}).get("id"),
    )


@router.post("/gitlab", status_code=200)
async def receive_gitlab_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_gitlab_token: str | None = Header(default=None),
    x_gitlab_event: str = Header(default="unknown"),
    config: Settings = Depends(get_settings),
    store: ReviewStore = Depends(get_review_store),
) -> dict[str, str]:
    """Receive a GitLab webhook and schedule a review for merge request events.

    Raises:
        HTTPException(401): if a webhook token is configured and does not match.
    """
    verify_gitlab_token(config.gitlab_webhook_token, x_gitlab_token)

    payload: dict[str, Any] = json.loads(await request.body())
    attributes = payload.get("object_attributes", {})
    logger.info(
        "GitLab webhook received",
        extra={"event": x_gitlab_event, "action": attributes.get("action", "")},
    )

    result = _filter_engine.should_review_gitlab(payload)
    if not result.should_process:
        return {"status": "ignored", "reason": result.reason}

    return _schedule_review(
        background_tasks,
        config,
        store,
        "gitlab",
        project=str(payload.get("project", {}).get("id", "")),
        request_id=attributes.get("iid", 0),
        user=payload.get("user", {}).get("username", "system"),
    )
