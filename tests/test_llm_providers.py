"""Tests for the language-model providers with mocked SDK clients."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from anthropic.types import TextBlock

from app.core.exceptions import ModelCallError
from app.core.llm.anthropic import AnthropicProvider
from app.core.llm.openai import OpenAIProvider


def _anthropic(create: AsyncMock) -> AnthropicProvider:
    provider = AnthropicProvider("sk-ant-test", "claude-test", max_tokens=123, temperature=0.1)
    provider.client = MagicMock()
    provider.client.messages.create = create
    return provider


def _openai(create: AsyncMock) -> OpenAIProvider:
    provider = OpenAIProvider("sk-test", "gpt-test")
    provider.client = MagicMock()
    provider.client.chat.completions.create = create
    return provider


class TestAnthropicProvider:
    def test_joins_text_blocks(self) -> None:
        create = AsyncMock(
            return_value=SimpleNamespace(
                content=[TextBlock(type="text", text='{"comments": []'), TextBlock(type="text", text="}")]
            )
        )
        text = asyncio.run(_anthropic(create).complete("review this"))

        assert text == '{"comments": []}'
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 123
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": "review this"}]

    def test_sdk_error_becomes_model_call_error(self) -> None:
        create = AsyncMock(side_effect=RuntimeError("overloaded"))
        with pytest.raises(ModelCallError, match="overloaded"):
            asyncio.run(_anthropic(create).complete("review this"))

    def test_no_text_blocks_is_an_error(self) -> None:
        create = AsyncMock(return_value=SimpleNamespace(content=[]))
        with pytest.raises(ModelCallError, match="empty"):
            asyncio.run(_anthropic(create).complete("review this"))


class TestOpenAIProvider:
    def test_returns_message_content(self) -> None:
        message = SimpleNamespace(content='{"comments": [], "summary": "ok"}')
        create = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))

        text = asyncio.run(_openai(create).complete("review this"))

        assert text == '{"comments": [], "summary": "ok"}'
        assert create.call_args.kwargs["model"] == "gpt-test"

    def test_null_content_is_an_error(self) -> None:
        message = SimpleNamespace(content=None)
        create = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))
        with pytest.raises(ModelCallError):
            asyncio.run(_openai(create).complete("review this"))
