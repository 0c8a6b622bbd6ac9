"""Tests for the FilterEngine gatekeeper.

Covers:
- PR / MR action gating
- Bot detection (known logins, [bot] and -bot suffixes)
- skip-ai-review label
- Draft filtering
- is_reviewable() / get_reviewable_files()
"""

from __future__ import annotations

import pytest

from app.core.filter_engine import FilterEngine, get_reviewable_files, is_reviewable


@pytest.fixture()
def engine() -> FilterEngine:
    """Create a FilterEngine instance."""
    return FilterEngine()


def _github_payload(
    action: str = "opened",
    author: str = "developer",
    labels: list[str] | None = None,
    draft: bool = False,
) -> dict:
    """Build a minimal PR webhook payload for filter testing."""
    return {
        "action": action,
        "pull_request": {
            "user": {"login": author},
            "labels": [{"name": lbl} for lbl in (labels or [])],
            "draft": draft,
        },
    }


def _gitlab_payload(
    action: str = "open",
    author: str = "developer",
    labels: list[str] | None = None,
    draft: bool = False,
    object_kind: str = "merge_request",
) -> dict:
    """Build a minimal merge request webhook payload."""
    return {
        "object_kind": object_kind,
        "user": {"username": author},
        "labels": [{"title": lbl} for lbl in (labels or [])],
        "object_attributes": {"action": action, "iid": 7, "draft": draft},
    }


# =============================================================================
#  GitHub
# =============================================================================


class TestGitHubActions:
    @pytest.mark.parametrize("action", ["opened", "synchronize", "reopened"])
    def test_review_actions_processed(self, engine: FilterEngine, action: str) -> None:
        result = engine.should_review_github(_github_payload(action=action))
        assert result.should_process is True

    @pytest.mark.parametrize("action", ["closed", "labeled", "edited", ""])
    def test_other_actions_skipped(self, engine: FilterEngine, action: str) -> None:
        result = engine.should_review_github(_github_payload(action=action))
        assert result.should_process is False
        assert "does not trigger" in result.reason


class TestBotDetection:
    """Test that known bot accounts are filtered out."""

    @pytest.mark.parametrize(
        "bot_login",
        [
            "dependabot[bot]",
            "renovate[bot]",
            "snyk-bot",
            "github-actions[bot]",
            "imgbot[bot]",
        ],
    )
    def test_known_bots_skipped(self, engine: FilterEngine, bot_login: str) -> None:
        result = engine.should_review_github(_github_payload(author=bot_login))
        assert result.should_process is False
        assert bot_login in result.reason

    def test_custom_bot_suffix_skipped(self, engine: FilterEngine) -> None:
        """Any author ending in [bot] should be skipped."""
        result = engine.should_review_github(_github_payload(author="my-custom-ci[bot]"))
        assert result.should_process is False

    def test_normal_author_not_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_github(_github_payload(author="john-developer"))
        assert result.should_process is True


class TestLabelOverride:
    def test_skip_label_present(self, engine: FilterEngine) -> None:
        result = engine.should_review_github(_github_payload(labels=["skip-ai-review"]))
        assert result.should_process is False
        assert "skip-ai-review" in result.reason

    def test_other_labels_ignored(self, engine: FilterEngine) -> None:
        result = engine.should_review_github(_github_payload(labels=["bug", "enhancement"]))
        assert result.should_process is True


class TestDraftPR:
    def test_draft_pr_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_github(_github_payload(draft=True))
        assert result.should_process is False
        assert "Draft" in result.reason

    def test_non_draft_pr_not_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_github(_github_payload(draft=False))
        assert result.should_process is True


# =============================================================================
#  GitLab
# =============================================================================


class TestGitLab:
    @pytest.mark.parametrize("action", ["open", "update", "reopen"])
    def test_review_actions_processed(self, engine: FilterEngine, action: str) -> None:
        result = engine.should_review_gitlab(_gitlab_payload(action=action))
        assert result.should_process is True

    @pytest.mark.parametrize("action", ["close", "merge", "approved"])
    def test_other_actions_skipped(self, engine: FilterEngine, action: str) -> None:
        assert engine.should_review_gitlab(_gitlab_payload(action=action)).should_process is False

    def test_non_merge_request_event_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_gitlab(_gitlab_payload(object_kind="push"))
        assert result.should_process is False
        assert "push" in result.reason

    def test_bot_user_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_gitlab(_gitlab_payload(author="project_42-bot"))
        assert result.should_process is False

    def test_skip_label(self, engine: FilterEngine) -> None:
        result = engine.should_review_gitlab(_gitlab_payload(labels=["skip-ai-review"]))
        assert result.should_process is False

    def test_draft_skipped(self, engine: FilterEngine) -> None:
        result = engine.should_review_gitlab(_gitlab_payload(draft=True))
        assert result.should_process is False

    def test_work_in_progress_skipped(self, engine: FilterEngine) -> None:
        payload = _gitlab_payload()
        payload["object_attributes"]["work_in_progress"] = True
        assert engine.should_review_gitlab(payload).should_process is False


# =============================================================================
#  Reviewable files
# =============================================================================


class TestGetReviewableFiles:
    """Test the file filtering utility."""

    def test_filters_markdown(self) -> None:
        result = get_reviewable_files(["app/main.py", "README.md", "docs/guide.rst"])
        assert result == ["app/main.py"]

    def test_filters_lockfiles(self) -> None:
        result = get_reviewable_files(
            ["app/main.py", "package-lock.json", "yarn.lock", "poetry.lock"]
        )
        assert result == ["app/main.py"]

    def test_filters_images(self) -> None:
        result = get_reviewable_files(["app/main.py", "logo.png", "icon.svg"])
        assert result == ["app/main.py"]

    def test_filters_vendor_dirs(self) -> None:
        result = get_reviewable_files(
            ["app/main.py", "vendor/lib/util.js", "node_modules/pkg/index.js"]
        )
        assert result == ["app/main.py"]

    def test_filters_build_artifacts(self) -> None:
        result = get_reviewable_files(["app/main.py", "dist/bundle.min.js", "static/app.min.css"])
        assert result == ["app/main.py"]

    def test_empty_list(self) -> None:
        assert get_reviewable_files([]) == []

    def test_preserves_code_files(self) -> None:
        code_files = ["app/main.py", "src/index.ts", "lib/utils.go", "handler.rs"]
        assert get_reviewable_files(code_files) == code_files

    def test_directory_name_only_matters_for_parents(self) -> None:
        assert is_reviewable("src/build.py") is True
        assert is_reviewable("build/output.py") is False
