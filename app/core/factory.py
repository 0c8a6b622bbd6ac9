"""Builds providers and review engines from ``Settings``.

Provider clients are cheap and stateless, so a fresh engine is built per
review; only the GitHub App token cache is shared.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from app.config import Settings
from app.core.exceptions import ConfigurationError
from app.core.llm.anthropic import AnthropicProvider
from app.core.llm.base import ModelProvider
from app.core.llm.openai import OpenAIProvider
from app.core.review_engine import ReviewEngine
from app.core.vcs.base import VcsProvider
from app.core.vcs.github_auth import GitHubAppAuth
from app.core.vcs.github_client import GitHubClient
from app.core.vcs.gitlab_client import GitLabClient
from app.models.store import ReviewStore

logger = logging.getLogger(__name__)

VcsKind = Literal["github", "gitlab"]
AIProviderKind = Literal["anthropic", "openai"]


@lru_cache(maxsize=4)
def _github_app_auth(app_id: str, private_key: str, api_base: str) -> GitHubAppAuth:
    return GitHubAppAuth(app_id, private_key, api_base=api_base)


def build_vcs_provider(
    settings: Settings, vcs: VcsKind, *, installation_id: int | None = None
) -> VcsProvider:
    if vcs == "github":
        if settings.github_token:
            return GitHubClient(settings.github_token, api_base=settings.github_api_url)
        if settings.github_app_id and installation_id:
            app_auth = _github_app_auth(
                settings.github_app_id, settings.github_private_key, settings.github_api_url
            )
            return GitHubClient(
                app_auth=app_auth,
                installation_id=installation_id,
                api_base=settings.github_api_url,
            )
        raise ConfigurationError(
            "GitHub is not configured — set GITHUB_TOKEN or GITHUB_APP_ID with an installation"
        )

    if vcs == "gitlab":
        if not settings.gitlab_token:
            raise ConfigurationError("GitLab is not configured — set GITLAB_TOKEN")
        return GitLabClient(settings.gitlab_token, api_base=settings.gitlab_api_url)

    raise ConfigurationError(f"Unknown VCS provider {vcs!r}")


def build_model_provider(
    settings: Settings,
    provider: AIProviderKind | None = None,
    model: str | None = None,
) -> ModelProvider:
    provider = provider or settings.ai_provider
    options = {"max_tokens": settings.model_max_tokens, "temperature": settings.model_temperature}

    if provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured")
        return AnthropicProvider(
            settings.anthropic_api_key, model or settings.anthropic_model, **options
        )

    if provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        return OpenAIProvider(settings.openai_api_key, model or settings.openai_model, **options)

    raise ConfigurationError(f"Unknown AI provider {provider!r}")


def build_engine(
    settings: Settings,
    vcs: VcsKind,
    *,
    store: ReviewStore | None = None,
    installation_id: int | None = None,
    ai_provider: AIProviderKind | None = None,
    ai_model: str | None = None,
) -> ReviewEngine:
    """Assemble a ``ReviewEngine`` for one review."""
    return ReviewEngine(
        build_vcs_provider(settings, vcs, installation_id=installation_id),
        build_model_provider(settings, ai_provider, ai_model),
        store=store,
        include_context=settings.allow_context_comments,
    )
