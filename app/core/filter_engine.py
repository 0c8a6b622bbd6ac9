"""Pre-LLM gatekeeper.

Two cheap, deterministic checks that run before any model call:

- ``FilterEngine.should_review_*`` decides from a webhook payload whether a
  merge/pull request event deserves a review at all.
- ``get_reviewable_files`` drops files nobody wants reviewed (lockfiles,
  images, docs, vendored or generated directories).
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
#  Constants
# =============================================================================

BOT_LOGINS: frozenset[str] = frozenset(
    {
        "dependabot[bot]",
        "renovate[bot]",
        "github-actions[bot]",
        "snyk-bot",
        "semantic-release-bot",
    }
)

SKIP_LABEL = "skip-ai-review"

GITHUB_REVIEW_ACTIONS: frozenset[str] = frozenset({"opened", "synchronize", "reopened"})
GITLAB_REVIEW_ACTIONS: frozenset[str] = frozenset({"open", "update", "reopen"})

NO_REVIEW_PATTERNS: tuple[str, ...] = (
    "*.md",
    "*.rst",
    "*.txt",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.svg",
    "*.ico",
    "*.lock",
    "*.sum",
    "package-lock.json",
    "pnpm-lock.yaml",
    "*.min.js",
    "*.min.css",
    "*.map",
)

SKIPPED_DIRECTORIES: frozenset[str] = frozenset(
    {"vendor", "node_modules", ".git", "__pycache__", "dist", "build"}
)


# =============================================================================
#  Result data class
# =============================================================================


@dataclass
class FilterResult:
    should_process: bool
    reason: str


def _skip(reason: str) -> FilterResult:
    logger.info("Filter: %s", reason)
    return FilterResult(False, reason)


# =============================================================================
#  Filter Engine
# =============================================================================


class FilterEngine:
    """Evaluates webhook payloads; rules apply in order, first match wins."""

    def should_review_github(self, payload: dict[str, Any]) -> FilterResult:
        action = payload.get("action", "")
        if action not in GITHUB_REVIEW_ACTIONS:
            return _skip(f"PR action {action!r} does not trigger a review")

        pr = payload.get("pull_request", {})
        author: str = pr.get("user", {}).get("login", "")
        if author in BOT_LOGINS or author.endswith("[bot]"):
            return _skip(f"Bot PR from {author}")

        labels = [label.get("name", "") for label in pr.get("labels", [])]
        if SKIP_LABEL in labels:
            return _skip(f"{SKIP_LABEL} label present")

        if pr.get("draft", False):
            return _skip("Draft PR — awaiting ready-for-review")

        return FilterResult(True, f"PR {action}")

    def should_review_gitlab(self, payload: dict[str, Any]) -> FilterResult:
        if payload.get("object_kind") != "merge_request":
            return _skip(f"GitLab event {payload.get('object_kind')!r} is not a merge request")

        attributes = payload.get("object_attributes", {})
        action = attributes.get("action", "")
        if action not in GITLAB_REVIEW_ACTIONS:
            return _skip(f"MR action {action!r} does not trigger a review")

        author: str = payload.get("user", {}).get("username", "")
        if author in BOT_LOGINS or author.endswith("-bot"):
            return _skip(f"Bot MR from {author}")

        labels = [label.get("title", "") for label in payload.get("labels", [])]
        if SKIP_LABEL in labels:
            return _skip(f"{SKIP_LABEL} label present")

        if attributes.get("draft") or attributes.get("work_in_progress"):
            return _skip("Draft MR — awaiting ready-for-review")

        return FilterResult(True, f"MR {action}")


def is_reviewable(path: str) -> bool:
    """Return False for docs, media, lockfiles, build output and vendored code."""
    parts = path.split("/")
    if any(part in SKIPPED_DIRECTORIES for part in parts[:-1]):
        return False
    return not any(fnmatch.fnmatch(parts[-1], pattern) for pattern in NO_REVIEW_PATTERNS)


def get_reviewable_files(paths: list[str]) -> list[str]:
    return [path for path in paths if is_reviewable(path)]
