"""Tests for the webhook endpoints (authenticity checks + event routing).

Covers:
- Missing / malformed / wrong / tampered GitHub signatures → 403
- GitLab token mismatch → 401
- Non-PR events and filtered PRs are ignored with a reason
- Accepted events schedule exactly one review with the right arguments
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import app
from app.models.store import InMemoryReviewStore

# Test secret — used in all HMAC tests.
TEST_SECRET = "test_webhook_secret_1234567890abcdef"
GITLAB_TOKEN = "gitlab-hook-token"


def _settings(**overrides: object) -> Settings:
    values: dict = {
        "github_webhook_secret": TEST_SECRET,
        "github_token": "ghp_test",
        "gitlab_token": "glpat-test",
        "gitlab_webhook_token": GITLAB_TOKEN,
        "anthropic_api_key": "sk-ant-test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _override_settings() -> Iterator[None]:
    app.dependency_overrides[get_settings] = lambda: _settings()
    app.state.review_store = InMemoryReviewStore()
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def engine() -> Iterator[MagicMock]:
    """Replace engine construction; the review itself is not run."""
    fake_engine = MagicMock()
    fake_engine.run_review = AsyncMock()
    with patch("app.api.webhooks.build_engine", return_value=fake_engine) as build:
        build.engine = fake_engine
        yield build


@pytest.fixture()
def client() -> TestClient:
    """Create a FastAPI TestClient."""
    return TestClient(app, raise_server_exceptions=False)


def _sign_payload(payload: bytes, secret: str = TEST_SECRET) -> str:
    """Compute a valid HMAC-SHA256 signature for a payload."""
    signature = hmac.new(
        key=secret.encode("utf-8"),
        msg=payload,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"sha256={signature}"


def _pr_payload(
    action: str = "opened",
    author: str = "developer",
    draft: bool = False,
    pr_number: int = 42,
) -> dict:
    """Build a minimal PR webhook payload."""
    return {
        "action": action,
        "installation": {"id": 12345},
        "repository": {"id": 67890, "full_name": "test-org/test-repo"},
        "sender": {"login": author},
        "pull_request": {
            "number": pr_number,
            "title": "Test PR",
            "draft": draft,
            "user": {"login": author},
            "labels": [],
        },
    }


def _mr_payload(action: str = "open", username: str = "developer") -> dict:
    return {
        "object_kind": "merge_request",
        "user": {"username": username},
        "project": {"id": 321, "path_with_namespace": "group/project"},
        "object_attributes": {"iid": 12, "action": action, "draft": False},
        "labels": [],
    }


# =============================================================================
#  HMAC Signature Tests
# =============================================================================


class TestHMACValidation:
    def test_missing_signature_returns_403(self, client: TestClient) -> None:
        response = client.post(
            "/api/webhooks/github",
            content=b"{}",
            headers={"X-GitHub-Event": "ping"},
        )
        assert response.status_code == 403
        assert "Missing" in response.json()["detail"]

    def test_malformed_signature_returns_403(self, client: TestClient) -> None:
        response = client.post(
            "/api/webhooks/github",
            content=b"{}",
            headers={
                "X-Hub-Signature-256": "md5=notavalidformat",
                "X-GitHub-Event": "ping",
            },
        )
        assert response.status_code == 403
        assert "Invalid signature format" in response.json()["detail"]

    def test_wrong_signature_returns_403(self, client: TestClient) -> None:
        payload = json.dumps(_pr_payload()).encode()
        response = client.post(
            "/api/webhooks/github",
            content=payload,
            headers={
                "X-Hub-Signature-256": "sha256=" + "0" * 64,
                "X-GitHub-Event": "pull_request",
            },
        )
        assert response.status_code == 403
        assert "Invalid webhook signature" in response.json()["detail"]

    def test_tampered_body_returns_403(self, client: TestClient) -> None:
        signature = _sign_payload(json.dumps(_pr_payload()).encode())
        tampered = json.dumps(_pr_payload(action="closed")).encode()

        response = client.post(
            "/api/webhooks/github",
            content=tampered,
            headers={"X-Hub-Signature-256": signature, "X-GitHub-Event": "pull_request"},
        )
        assert response.status_code == 403


# =============================================================================
#  GitHub Event Routing
# =============================================================================


class TestGitHubRouting:
    def _post_event(
        self,
        client: TestClient,
        payload: dict,
        event: str = "pull_request",
    ) -> dict:
        """Post a signed webhook event and return the response JSON."""
        body = json.dumps(payload).encode()
        response = client.post(
            "/api/webhooks/github",
            content=body,
            headers={
                "X-Hub-Signature-256": _sign_payload(body),
                "X-GitHub-Event": event,
                "X-GitHub-Delivery": "delivery-1",
            },
        )
        assert response.status_code == 200
        return response.json()

    @pytest.mark.parametrize("action", ["opened", "synchronize", "reopened"])
    def test_review_actions_schedule_review(
        self, client: TestClient, engine: MagicMock, action: str
    ) -> None:
        result = self._post_event(client, _pr_payload(action=action))

        assert result == {"status": "accepted"}
        assert engine.call_args.kwargs["installation_id"] == 12345
        assert engine.call_args.args[1] == "github"
        engine.engine.run_review.assert_awaited_once_with("test-org/test-repo", 42, "developer")

    def test_closed_pr_ignored(self, client: TestClient, engine: MagicMock) -> None:
        result = self._post_event(client, _pr_payload(action="closed"))
        assert result["status"] == "ignored"
        engine.engine.run_review.assert_not_awaited()

    def test_draft_pr_ignored(self, client: TestClient, engine: MagicMock) -> None:
        result = self._post_event(client, _pr_payload(draft=True))
        assert result["status"] == "ignored"
        assert "Draft" in result["reason"]

    def test_bot_pr_ignored(self, client: TestClient, engine: MagicMock) -> None:
        result = self._post_event(client, _pr_payload(author="dependabot[bot]"))
        assert result["status"] == "ignored"

    def test_other_events_ignored(self, client: TestClient, engine: MagicMock) -> None:
        result = self._post_event(client, {"action": "completed"}, event="check_run")
        assert result["status"] == "ignored"
        assert "check_run" in result["reason"]
        engine.assert_not_called()

    def test_unconfigured_provider_is_ignored(self, client: TestClient) -> None:
        app.dependency_overrides[get_settings] = lambda: _settings(github_token="", github_app_id="")
        result = self._post_event(client, _pr_payload())
        assert result["status"] == "ignored"
        assert "GitHub is not configured" in result["reason"]


# =============================================================================
#  GitLab
# =============================================================================


class TestGitLabWebhook:
    def _post(self, client: TestClient, payload: dict, token: str | None = GITLAB_TOKEN):
        headers = {"X-Gitlab-Event": "Merge Request Hook"}
        if token is not None:
            headers["X-Gitlab-Token"] = token
        return client.post("/api/webhooks/gitlab", content=json.dumps(payload), headers=headers)

    def test_missing_token_returns_401(self, client: TestClient) -> None:
        assert self._post(client, _mr_payload(), token=None).status_code == 401

    def test_wrong_token_returns_401(self, client: TestClient) -> None:
        assert self._post(client, _mr_payload(), token="nope").status_code == 401

    def test_no_configured_token_skips_check(self, client: TestClient, engine: MagicMock) -> None:
        app.dependency_overrides[get_settings] = lambda: _settings(gitlab_webhook_token="")
        response = self._post(client, _mr_payload(), token=None)
        assert response.status_code == 200
        assert response.json() == {"status": "accepted"}

    def test_merge_request_schedules_review(self, client: TestClient, engine: MagicMock) -> None:
        response = self._post(client, _mr_payload(action="update"))

        assert response.json() == {"status": "accepted"}
        assert engine.call_args.args[1] == "gitlab"
        engine.engine.run_review.assert_awaited_once_with("321", 12, "developer")

    def test_closed_merge_request_ignored(self, client: TestClient, engine: MagicMock) -> None:
        response = self._post(client, _mr_payload(action="close"))
        assert response.json()["status"] == "ignored"
        engine.assert_not_called()


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "store": "memory"}
