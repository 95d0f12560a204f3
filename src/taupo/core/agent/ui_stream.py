"""UI message streams — run an agent for a chat front-end.

The front-end sends UI messages (``{id, role, parts: [...]}``) and expects
back a single assistant message as a stream of UI chunks.  One message id
is generated per request and used for the ``start`` chunk only, so a
client never sees two starts for one response even when a router hands
over to a sub-agent mid-call.

Writer events (router status/handoff, tool artifacts) and the agent's own
events share one queue, so they reach the client in the order issued.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from taupo.core.agent.models import CallParameters
from taupo.core.interface.models import CanonicalMessage, ToolCall, ToolResult
from taupo.core.writer import QueueWriter
from taupo.errors import InvalidCallError

if TYPE_CHECKING:
    from taupo.core.agent.agent import Agent
    from taupo.core.runtime.results import StreamHandle

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TEXT = "An error occurred"

ErrorFormatter = Callable[[BaseException], str | None]


class UIMessagePart(BaseModel):
    """One part of a UI message; unknown part types are kept but ignored."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    text: str | None = None
    tool_call_id: str | None = Field(default=None, alias="toolCallId")
    state: str | None = None
    input: Any = None
    output: Any = None
    error_text: str | None = Field(default=None, alias="errorText")


class UIMessage(BaseModel):
    """A chat message as the front-end stores it."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    role: Literal["system", "user", "assistant"]
    parts: list[UIMessagePart] = Field(min_length=1)


def validate_ui_messages(messages: list[Any]) -> list[UIMessage]:
    """Validate raw UI messages; raises :class:`InvalidCallError`."""
    if not messages:
        msg = "At least one message is required"
        raise InvalidCallError(msg)
    try:
        return [m if isinstance(m, UIMessage) else UIMessage.model_validate(m) for m in messages]
    except PydanticValidationError as exc:
        raise InvalidCallError(f"Invalid UI messages: {exc}") from exc


def convert_to_model_messages(messages: list[UIMessage]) -> list[CanonicalMessage]:
    """Convert UI messages into canonical model messages.

    Text parts become message text.  Tool parts (``tool-<name>``) with an
    available output or error become an assistant tool call followed by its
    tool result; tool parts still in flight are dropped.
    """
    result: list[CanonicalMessage] = []
    for message in messages:
        texts: list[str] = []
        calls: list[ToolCall] = []
        results: list[ToolResult] = []
        for part in message.parts:
            if part.type == "text" and part.text:
                texts.append(part.text)
            elif part.type.startswith("tool-") and part.tool_call_id:
                if part.state not in ("output-available", "output-error"):
                    continue
                name = part.type.removeprefix("tool-")
                arguments = part.input if isinstance(part.input, dict) else {}
                calls.append(ToolCall(id=part.tool_call_id, name=name, arguments=arguments))
                is_error = part.state == "output-error"
                results.append(
                    ToolResult.from_text(
                        part.tool_call_id,
                        (part.error_text or "") if is_error else _output_text(part.output),
                        tool_name=name,
                        input=arguments,
                        output=part.output,
                        is_error=is_error,
                    )
                )

        text = "".join(texts)
        if message.role == "assistant":
            result.append(CanonicalMessage.assistant(text, tool_calls=calls or None))
            result.extend(CanonicalMessage.tool(r) for r in results)
        elif message.role == "user":
            result.append(CanonicalMessage.user(text))
        else:
            result.append(CanonicalMessage.system(text))
    return result


def _output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


async def to_ui_message_chunks(
    handle: StreamHandle,
    *,
    message_id: str | None = None,
    send_start: bool = True,
    on_error: ErrorFormatter | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Translate an agent's stream events into UI message chunks."""
    if send_start:
        start: dict[str, Any] = {"type": "start"}
        if message_id:
            start["messageId"] = message_id
        yield start

    text_id: str | None = None
    try:
        async for event in handle:
            if event.type == "start-step":
                yield {"type": "start-step"}
            elif event.type == "text-delta":
                if text_id is None:
                    text_id = uuid4().hex[:16]
                    yield {"type": "text-start", "id": text_id}
                yield {"type": "text-delta", "id": text_id, "delta": event.text}
            elif event.type == "tool-call" and event.tool_call is not None:
                if text_id is not None:
                    yield {"type": "text-end", "id": text_id}
                    text_id = None
                yield {
                    "type": "tool-input-available",
                    "toolCallId": event.tool_call.id,
                    "toolName": event.tool_call.name,
                    "input": event.tool_call.arguments,
                }
            elif event.type == "tool-result" and event.tool_result is not None:
                yield {
                    "type": "tool-output-available",
                    "toolCallId": event.tool_result.tool_call_id,
                    "output": _jsonable(event.tool_result.output),
                }
            elif event.type == "tool-error" and event.tool_result is not None:
                yield {
                    "type": "tool-output-error",
                    "toolCallId": event.tool_result.tool_call_id,
                    "errorText": event.tool_result.text,
                }
            elif event.type == "finish-step":
                if text_id is not None:
                    yield {"type": "text-end", "id": text_id}
                    text_id = None
                yield {"type": "finish-step"}
            elif event.type == "finish":
                yield {"type": "finish"}
    except Exception as exc:
        logger.exception("Agent stream failed")
        yield {"type": "error", "errorText": _error_text(exc, on_error)}


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def _error_text(exc: BaseException, on_error: ErrorFormatter | None) -> str:
    if on_error is not None:
        text = on_error(exc)
        if text:
            return text
    return DEFAULT_ERROR_TEXT


async def create_agent_ui_stream(
    agent: Agent,
    messages: list[Any],
    *,
    context: Any = None,
    max_messages_in_context: int | None = None,
    message_id: str | None = None,
    send_start: bool = True,
    on_error: ErrorFormatter | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Run *agent* over UI *messages* and yield UI message chunks.

    Validation happens before the first chunk, so malformed input raises
    :class:`InvalidCallError` from this coroutine rather than from the
    stream.  Usage::

        chunks = await create_agent_ui_stream(agent, body["messages"])
        async for chunk in chunks:
            ...
    """
    model_messages = convert_to_model_messages(validate_ui_messages(messages))
    resolved_id = message_id or uuid4().hex
    writer = QueueWriter()
    params = CallParameters(
        messages=model_messages,
        context=context,
        max_messages_in_context=max_messages_in_context,
        writer=writer,
    )
    params.validate()

    async def produce() -> None:
        try:
            if send_start:
                writer.write({"type": "start", "messageId": resolved_id})
            try:
                handle = await agent.stream(params)
            except Exception as exc:
                logger.exception("Agent %r failed to start", agent.name)
                writer.write({"type": "error", "errorText": _error_text(exc, on_error)})
                return
            async for chunk in to_ui_message_chunks(
                handle,
                message_id=resolved_id,
                send_start=False,
                on_error=on_error,
            ):
                writer.write(chunk)
        finally:
            writer.close()

    return _drain(writer, asyncio.create_task(produce()))


async def _drain(writer: QueueWriter, producer: asyncio.Task[None]) -> AsyncIterator[dict[str, Any]]:
    try:
        while True:
            chunk = await writer.queue.get()
            if chunk is None:
                break
            yield chunk
        await producer
    finally:
        if not producer.done():
            producer.cancel()
