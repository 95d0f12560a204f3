"""ModelClient — unified async interface to LLMs via LiteLLM.

Wraps LiteLLM behind a canonical-message interface so the tool loop only
ever works with :class:`CanonicalMessage` and :class:`ConversationHistory`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Literal

import litellm
from pydantic import BaseModel

from taupo.core.interface.config import ModelConfig
from taupo.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    TextContent,
    ToolCall,
)
from taupo.core.interface.transpiler import OpenAITranspiler, parse_arguments
from taupo.utils.telemetry import (
    ATTR_FINISH_REASON,
    ATTR_MODEL,
    ATTR_PROVIDER,
    ATTR_STREAMING,
    ATTR_TOKENS_COMPLETION,
    ATTR_TOKENS_PROMPT,
    ATTR_TOKENS_TOTAL,
    get_tracer,
)

_tracer = get_tracer(__name__)


class CompletionChunk(BaseModel):
    """One item of :meth:`ModelClient.stream`.

    ``text`` chunks carry a text delta; the single final ``message`` chunk
    carries the assembled assistant message including any tool calls.
    """

    type: Literal["text", "message"]
    text: str = ""
    message: CanonicalMessage | None = None

    @classmethod
    def text_delta(cls, text: str) -> CompletionChunk:
        return cls(type="text", text=text)

    @classmethod
    def final(cls, message: CanonicalMessage) -> CompletionChunk:
        return cls(type="message", message=message)


class ModelClient:
    """Async client for generating LLM responses via LiteLLM.

    Usage::

        client = ModelClient(ModelConfig(model="openai/gpt-4o"))
        response = await client.complete(history, tools=schemas)

        async for chunk in client.stream(history, tools=schemas):
            ...
    """

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self.transpiler = OpenAITranspiler()

    async def complete(
        self,
        messages: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> CanonicalMessage:
        """Generate a single assistant message.

        Args:
            messages: The conversation history, system message included.
            tools: Optional OpenAI function schemas.
            **kwargs: Additional parameters passed to LiteLLM.
        """
        with _tracer.start_as_current_span("model.complete") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_PROVIDER, self.config.provider)
            span.set_attribute(ATTR_STREAMING, False)

            call_kwargs = self._call_kwargs(messages, tools, kwargs)
            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            result = self._parse_response(response)

            usage: dict[str, Any] | None = result.metadata.get("usage")
            if isinstance(usage, dict):
                span.set_attribute(ATTR_TOKENS_PROMPT, int(usage.get("prompt_tokens", 0)))
                span.set_attribute(ATTR_TOKENS_COMPLETION, int(usage.get("completion_tokens", 0)))
                span.set_attribute(ATTR_TOKENS_TOTAL, int(usage.get("total_tokens", 0)))
            finish_reason = result.metadata.get("finish_reason")
            if finish_reason is not None:
                span.set_attribute(ATTR_FINISH_REASON, str(finish_reason))

            return result

    async def stream(
        self,
        messages: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream text deltas, then one final chunk with the whole message.

        Tool call deltas are assembled by their ``index`` as OpenAI sends
        them: the id and name arrive once, the arguments in fragments.
        """
        # Not made current: the span stays open across this generator's yields.
        span = _tracer.start_span("model.stream")
        try:
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_PROVIDER, self.config.provider)
            span.set_attribute(ATTR_STREAMING, True)

            call_kwargs = self._call_kwargs(messages, tools, kwargs)
            response = await litellm.acompletion(stream=True, **call_kwargs)  # pyright: ignore[reportUnknownMemberType]

            text_parts: list[str] = []
            calls: dict[int, dict[str, str]] = {}
            finish_reason: str | None = None

            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if getattr(delta, "content", None):
                    text_parts.append(delta.content)
                    yield CompletionChunk.text_delta(delta.content)
                for tc in getattr(delta, "tool_calls", None) or []:
                    entry = calls.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function is not None:
                        if tc.function.name:
                            entry["name"] += tc.function.name
                        if tc.function.arguments:
                            entry["arguments"] += tc.function.arguments
                if choice.finish_reason:
                    finish_reason = choice.finish_reason

            tool_calls: list[ToolCall] | None = None
            if calls:
                tool_calls = [
                    _make_tool_call(entry["id"], entry["name"], entry["arguments"])
                    for _, entry in sorted(calls.items())
                ]
            if finish_reason is not None:
                span.set_attribute(ATTR_FINISH_REASON, finish_reason)

            yield CompletionChunk.final(
                CanonicalMessage.assistant(
                    "".join(text_parts),
                    tool_calls=tool_calls,
                    finish_reason=finish_reason,
                    model=self.config.model,
                )
            )
        finally:
            span.end()

    def _call_kwargs(
        self,
        messages: ConversationHistory,
        tools: list[dict[str, Any]] | None,
        extra: dict[str, Any],
    ) -> dict[str, Any]:
        call_kwargs: dict[str, Any] = {
            **self.config.completion_kwargs(),
            "messages": self.transpiler.to_provider(messages),
            **extra,
        }
        if tools:
            call_kwargs["tools"] = tools
        return call_kwargs

    def _parse_response(self, response: Any) -> CanonicalMessage:
        """Convert a LiteLLM response to a CanonicalMessage.

        LiteLLM returns OpenAI-compatible response objects regardless of
        the underlying provider.
        """
        message = response.choices[0].message

        content: list[ContentPart] = []
        if message.content:
            content = [TextContent(text=message.content)]

        tool_calls: list[ToolCall] | None = None
        if message.tool_calls:
            tool_calls = [
                _make_tool_call(tc.id, tc.function.name, tc.function.arguments)
                for tc in message.tool_calls
            ]

        metadata: dict[str, Any] = {}
        if getattr(response, "usage", None):
            metadata["usage"] = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        metadata["finish_reason"] = response.choices[0].finish_reason
        metadata["model"] = response.model

        return CanonicalMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls,
            metadata=metadata,
        )


def _make_tool_call(call_id: str | None, name: str, arguments: str | None) -> ToolCall:
    if call_id:
        return ToolCall(id=call_id, name=name, arguments=parse_arguments(arguments))
    return ToolCall(name=name, arguments=parse_arguments(arguments))
