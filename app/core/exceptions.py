"""Domain-specific exceptions for ReviewBridge.

Every failure of an external collaborator (VCS provider, language model)
raises one of these so the review engine can decide precisely which
failures end a review and which only cost a single comment.
"""

from __future__ import annotations


# =============================================================================
# VCS providers (GitHub / GitLab)
# =============================================================================


class VcsError(Exception):
    """Base exception for all version-control provider failures."""


class VcsAuthError(VcsError):
    """Credentials were rejected — check the provider token or App settings."""


class VcsRateLimitError(VcsError):
    """Provider API rate limit exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", reset_at: str = "") -> None:
        self.reset_at = reset_at
        super().__init__(message)


class VcsAPIError(VcsError):
    """Generic provider API error with status code context."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        self.status_code = status_code
        super().__init__(message)


class DiffFetchError(VcsError):
    """The request or its changed files could not be fetched.  Ends the review."""


class PositionResolutionFailure(VcsError):
    """A comment could be placed neither positionally nor as a plain note."""


class CommentDeletionFailure(VcsError):
    """A previously posted machine-authored comment could not be removed."""


# =============================================================================
# LLM / AI
# =============================================================================


class LLMError(Exception):
    """Base exception for language-model integration failures."""


class ModelCallError(LLMError):
    """Transport, authentication or rate-limit failure while calling the model."""


class ResponseParseError(LLMError):
    """Model output could not be salvaged even after sanitizing and repair."""


# =============================================================================
# Review lifecycle
# =============================================================================


class InvalidTransitionError(ValueError):
    """A review was asked to move to a status it cannot reach from its current one."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(Exception):
    """A provider was requested without the credentials it needs."""
