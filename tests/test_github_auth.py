"""Tests for GitHub App installation-token handling."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from app.core.exceptions import VcsAuthError
from app.core.vcs.github_auth import GitHubAppAuth
from app.core.vcs.github_client import GitHubClient


def _token_transport(calls: list[httpx.Request], status_code: int = 201) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code, json={"token": f"ghs_{len(calls)}"})

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def _fake_jwt():
    with patch("app.core.vcs.github_auth.jose_jwt.encode", return_value="app.jwt.token") as encode:
        yield encode


class TestInstallationToken:
    def test_token_is_cached(self) -> None:
        calls: list[httpx.Request] = []
        auth = GitHubAppAuth("123", "PRIVATE KEY", transport=_token_transport(calls))

        async def fetch_twice() -> tuple[str, str]:
            return await auth.installation_token(42), await auth.installation_token(42)

        first, second = asyncio.run(fetch_twice())
        assert first == second == "ghs_1"
        assert len(calls) == 1
        assert calls[0].url.path == "/app/installations/42/access_tokens"
        assert calls[0].headers["Authorization"] == "Bearer app.jwt.token"

    def test_invalidate_forces_refresh(self) -> None:
        calls: list[httpx.Request] = []
        auth = GitHubAppAuth("123", "PRIVATE KEY", transport=_token_transport(calls))

        async def fetch_invalidate_fetch() -> str:
            await auth.installation_token(42)
            auth.invalidate(42)
            return await auth.installation_token(42)

        assert asyncio.run(fetch_invalidate_fetch()) == "ghs_2"

    def test_jwt_claims(self, _fake_jwt) -> None:
        GitHubAppAuth("123", "PRIVATE KEY").generate_app_jwt()
        claims = _fake_jwt.call_args.args[0]
        assert claims["iss"] == "123"
        assert claims["exp"] - claims["iat"] == 600
        assert _fake_jwt.call_args.kwargs["algorithm"] == "RS256"

    def test_empty_private_key(self) -> None:
        with pytest.raises(VcsAuthError):
            GitHubAppAuth("123", "").generate_app_jwt()

    def test_unknown_installation(self) -> None:
        auth = GitHubAppAuth("123", "PRIVATE KEY", transport=_token_transport([], status_code=404))
        with pytest.raises(VcsAuthError, match="not found"):
            asyncio.run(auth.installation_token(42))


class TestClientWithAppAuth:
    def test_403_refreshes_token_once(self) -> None:
        token_calls: list[httpx.Request] = []
        auth = GitHubAppAuth("123", "PRIVATE KEY", transport=_token_transport(token_calls))
        seen_tokens: list[str] = []

        def api(request: httpx.Request) -> httpx.Response:
            seen_tokens.append(request.headers["Authorization"])
            if len(seen_tokens) == 1:
                return httpx.Response(403, json={"message": "Bad credentials"})
            return httpx.Response(201, json={})

        client = GitHubClient(app_auth=auth, installation_id=42, transport=httpx.MockTransport(api))
        accepted = asyncio.run(client.submit_plain_note("acme/api", 7, "note"))

        assert accepted is True
        assert seen_tokens == ["Bearer ghs_1", "Bearer ghs_2"]
