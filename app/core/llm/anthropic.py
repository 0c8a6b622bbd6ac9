from __future__ import annotations

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from app.core.llm.base import ModelProvider

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicProvider(ModelProvider):
    name = "anthropic"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)
        self.client = AsyncAnthropic(api_key=api_key)

    async def _call_api(self, prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
