from __future__ import annotations

from openai import AsyncOpenAI

from app.core.llm.base import ModelProvider

DEFAULT_MODEL = "gpt-4o"


class OpenAIProvider(ModelProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, **kwargs) -> None:
        super().__init__(model, **kwargs)
        self.client = AsyncOpenAI(api_key=api_key)

    async def _call_api(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""
