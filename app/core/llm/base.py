"""Base model provider implementing the Template Method pattern.

All providers share the same call contract:
    complete() → _call_api()   ← only this differs per provider
               → empty-response check

Failures of any kind surface as ``ModelCallError`` so the review engine can
fail the review with a readable message.  There is no retry
loop here: a failed call fails the review.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from app.core.exceptions import ModelCallError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4000
_TEMPERATURE = 0.2


class ModelProvider(ABC):
    name: str = "model"

    def __init__(
        self,
        model: str,
        *,
        max_tokens: int = _MAX_TOKENS,
        temperature: float = _TEMPERATURE,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the raw text response.

        Raises:
            ModelCallError: On transport, authentication or rate-limit failure,
                or when the model returns no text.
        """
        try:
            text = await self._call_api(prompt)
        except ModelCallError:
            raise
        except Exception as exc:
            logger.error(
                "%s call failed: %s",
                self.__class__.__name__,
                exc,
                extra={"model": self.model},
            )
            raise ModelCallError(f"{self.name} call failed: {exc}") from exc

        if not text or not text.strip():
            raise ModelCallError(f"{self.name} returned an empty response")

        logger.info(
            "Model call completed",
            extra={"provider": self.name, "model": self.model, "chars": len(text)},
        )
        return text

    @abstractmethod
    async def _call_api(self, prompt: str) -> str:
        """Make a single API call and return the raw text response."""
