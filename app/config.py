"""Application configuration via pydantic-settings.

Loads all settings from environment variables (or .env file).
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration for the ReviewBridge application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- GitHub ---
    github_api_url: str = "https://api.github.com"
    github_token: str = ""
    github_app_id: str = ""
    github_app_private_key_path: str = "./private-key.pem"
    github_webhook_secret: str = ""

    # --- GitLab ---
    gitlab_api_url: str = "https://gitlab.com/api/v4"
    gitlab_token: str = ""
    gitlab_webhook_token: str = ""

    # --- AI / LLM ---
    ai_provider: Literal["anthropic", "openai"] = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    model_max_tokens: int = 4000
    model_temperature: float = 0.2

    # --- Review behaviour ---
    allow_context_comments: bool = False

    # --- Database (empty → in-memory review store) ---
    database_url: str = ""

    # --- Application ---
    log_level: str = "INFO"

    @property
    def github_private_key(self) -> str:
        """Read the GitHub App private key from file."""
        key_path = Path(self.github_app_private_key_path)
        if not key_path.exists():
            logger.warning(
                "GitHub App private key not found at %s — App authentication will fail",
                key_path,
            )
            return ""
        return key_path.read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()
