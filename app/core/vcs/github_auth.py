"""GitHub App authentication.

Exchanges a short-lived RS256 App JWT for installation access tokens and
caches them in-process for 55 minutes (tokens expire after 60 minutes; the
5-minute buffer avoids clock-skew problems).
"""

from __future__ import annotations

import logging
import time

import httpx
from jose import jwt as jose_jwt

from app.core.exceptions import VcsAPIError, VcsAuthError

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GitHubAppAuth:
    """Installation token source for one GitHub App.

    One instance is shared by every review; it holds only tokens, which are
    valid for the whole installation, never request data.
    """

    TOKEN_TTL_SECONDS = 55 * 60

    def __init__(
        self,
        app_id: str,
        private_key: str,
        *,
        api_base: str = GITHUB_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_id = app_id
        self.private_key = private_key
        self.api_base = api_base.rstrip("/")
        self._transport = transport
        self._tokens: dict[int, tuple[str, float]] = {}

    def generate_app_jwt(self) -> str:
        """Generate a JWT valid for ~9 minutes (GitHub maximum is 10)."""
        if not self.private_key:
            raise VcsAuthError(
                "GitHub App private key is empty — check GITHUB_APP_PRIVATE_KEY_PATH"
            )

        now = int(time.time())
        payload = {
            "iat": now - 60,     # issued-at: 60s in the past for clock drift
            "exp": now + 540,
            "iss": self.app_id,
        }
        return jose_jwt.encode(payload, self.private_key, algorithm="RS256")

    async def installation_token(self, installation_id: int) -> str:
        """Return a cached installation token, fetching a fresh one when expired."""
        cached = self._tokens.get(installation_id)
        if cached is not None and cached[1] > time.monotonic():
            return cached[0]

        token = await self._fetch_installation_token(installation_id)
        self._tokens[installation_id] = (token, time.monotonic() + self.TOKEN_TTL_SECONDS)
        return token

    def invalidate(self, installation_id: int) -> None:
        """Force a refresh on next use (e.g., after a 403 from the API)."""
        self._tokens.pop(installation_id, None)

    async def _fetch_installation_token(self, installation_id: int) -> str:
        app_jwt = self.generate_app_jwt()

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            response = await client.post(
                f"{self.api_base}/app/installations/{installation_id}/access_tokens",
                headers={
                    "Authorization": f"Bearer {app_jwt}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
            )

        if response.status_code == 401:
            raise VcsAuthError("App JWT is invalid — check GITHUB_APP_PRIVATE_KEY_PATH and GITHUB_APP_ID")
        if response.status_code == 404:
            raise VcsAuthError(
                f"Installation {installation_id} not found — may have been uninstalled"
            )
        if response.status_code >= 400:
            raise VcsAPIError(
                f"Failed to get installation token: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.info("Fresh installation token obtained", extra={"installation_id": installation_id})
        return response.json()["token"]
