"""Tests for ModelClient — unit tests with mocked LiteLLM."""

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from taupo.core.interface.client import CompletionChunk, ModelClient
from taupo.core.interface.config import ModelConfig
from taupo.core.interface.models import CanonicalMessage, ConversationHistory


class TestModelConfig:
    def test_provider_extraction(self) -> None:
        config = ModelConfig(model="openai/gpt-4o")
        assert config.provider == "openai"

    def test_provider_no_prefix(self) -> None:
        config = ModelConfig(model="gpt-4o")
        assert config.provider == "openai"

    def test_gemini_provider(self) -> None:
        config = ModelConfig(model="gemini/gemini-2.5-flash")
        assert config.provider == "gemini"
        assert config.model_id == "gemini-2.5-flash"

    def test_completion_kwargs(self) -> None:
        config = ModelConfig(
            model="openai/gpt-4o",
            api_key="key",
            temperature=0.2,
            extra={"max_tokens": 50},
        )
        assert config.completion_kwargs() == {
            "model": "openai/gpt-4o",
            "api_key": "key",
            "temperature": 0.2,
            "max_tokens": 50,
        }


def _make_mock_response(
    content: str | None = "Hello!",
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
    model: str = "gpt-4o",
) -> MagicMock:
    """Create a mock LiteLLM response object."""
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls

    choice = MagicMock()
    choice.message = message
    choice.finish_reason = finish_reason

    usage = MagicMock()
    usage.prompt_tokens = 10
    usage.completion_tokens = 5
    usage.total_tokens = 15

    response = MagicMock()
    response.choices = [choice]
    response.usage = usage
    response.model = model

    return response


def _stream_chunk(
    content: str | None = None,
    tool_calls: list[Any] | None = None,
    finish_reason: str | None = None,
) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


def _tool_delta(index: int, call_id: str | None, name: str | None, arguments: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


async def _agen(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


class TestModelClient:
    @pytest.fixture
    def config(self) -> ModelConfig:
        return ModelConfig(model="openai/gpt-4o", api_key="test-key")

    @pytest.fixture
    def client(self, config: ModelConfig) -> ModelClient:
        return ModelClient(config)

    @pytest.fixture
    def history(self) -> ConversationHistory:
        return ConversationHistory(
            messages=[
                CanonicalMessage.system("You are helpful."),
                CanonicalMessage.user("Hello"),
            ]
        )

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_text_response(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        result = await client.complete(history)

        assert result.role == "assistant"
        assert result.text == "Hello!"
        assert result.metadata["usage"]["total_tokens"] == 15
        assert result.metadata["finish_reason"] == "stop"

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_passes_model_and_messages(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        await client.complete(history)

        call_kwargs = mock_litellm.acompletion.call_args
        assert call_kwargs.kwargs["model"] == "openai/gpt-4o"
        assert call_kwargs.kwargs["api_key"] == "test-key"
        assert call_kwargs.kwargs["messages"] == [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello"},
        ]
        assert "tools" not in call_kwargs.kwargs

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_with_tools(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        tools = [
            {
                "type": "function",
                "function": {
                    "name": "calculator",
                    "parameters": {"type": "object", "properties": {}},
                },
            }
        ]
        await client.complete(history, tools=tools)

        call_kwargs = mock_litellm.acompletion.call_args
        assert call_kwargs.kwargs["tools"] == tools

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_tool_call_response(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        tc_mock = MagicMock()
        tc_mock.id = "call-1"
        tc_mock.function.name = "calculator"
        tc_mock.function.arguments = '{"expression": "2+2"}'

        mock_litellm.acompletion = AsyncMock(
            return_value=_make_mock_response(
                content=None,
                tool_calls=[tc_mock],
                finish_reason="tool_calls",
            )
        )

        result = await client.complete(history)

        assert result.tool_calls is not None
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].id == "call-1"
        assert result.tool_calls[0].name == "calculator"
        assert result.tool_calls[0].arguments == {"expression": "2+2"}
        assert result.text == ""

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_passes_kwargs(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        await client.complete(history, temperature=0.7, max_tokens=100)

        call_kwargs = mock_litellm.acompletion.call_args
        assert call_kwargs.kwargs["temperature"] == 0.7
        assert call_kwargs.kwargs["max_tokens"] == 100

    @patch("taupo.core.interface.client.litellm")
    async def test_complete_with_api_base(
        self, mock_litellm: MagicMock, history: ConversationHistory
    ) -> None:
        config = ModelConfig(
            model="openai/gpt-4o",
            api_key="key",
            api_base="http://localhost:8000",
        )
        client = ModelClient(config)
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        await client.complete(history)

        call_kwargs = mock_litellm.acompletion.call_args
        assert call_kwargs.kwargs["api_base"] == "http://localhost:8000"

    @patch("taupo.core.interface.client.litellm")
    async def test_stream_text_then_final_message(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(
            return_value=_agen(
                [
                    _stream_chunk("Hel"),
                    _stream_chunk("lo"),
                    _stream_chunk(finish_reason="stop"),
                ]
            )
        )

        chunks: list[CompletionChunk] = [chunk async for chunk in client.stream(history)]

        assert [c.text for c in chunks if c.type == "text"] == ["Hel", "lo"]
        final = chunks[-1]
        assert final.type == "message"
        assert final.message is not None
        assert final.message.text == "Hello"
        assert final.message.tool_calls is None
        assert final.message.metadata["finish_reason"] == "stop"
        assert mock_litellm.acompletion.call_args.kwargs["stream"] is True

    @patch("taupo.core.interface.client.litellm")
    async def test_stream_assembles_tool_call_deltas(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(
            return_value=_agen(
                [
                    _stream_chunk(tool_calls=[_tool_delta(0, "call-1", "calculator", '{"expr')]),
                    _stream_chunk(tool_calls=[_tool_delta(0, None, None, 'ession": "2+2"}')]),
                    _stream_chunk(tool_calls=[_tool_delta(1, "call-2", "search", "{}")]),
                    _stream_chunk(finish_reason="tool_calls"),
                ]
            )
        )

        chunks = [chunk async for chunk in client.stream(history)]

        assert len(chunks) == 1
        message = chunks[0].message
        assert message is not None
        assert message.tool_calls is not None
        assert [tc.id for tc in message.tool_calls] == ["call-1", "call-2"]
        assert message.tool_calls[0].name == "calculator"
        assert message.tool_calls[0].arguments == {"expression": "2+2"}
        assert message.tool_calls[1].arguments == {}

    @patch("taupo.core.interface.client.litellm")
    async def test_stream_propagates_provider_errors(
        self, mock_litellm: MagicMock, client: ModelClient, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(side_effect=RuntimeError("rate limited"))

        with pytest.raises(RuntimeError, match="rate limited"):
            async for _ in client.stream(history):
                pass
