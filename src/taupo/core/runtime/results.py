"""Results of a model-invocation run: step traces, stream events, stream handles."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, Literal

from pydantic import BaseModel

from taupo.core.interface.models import CanonicalMessage, ToolCall, ToolResult


class Step(BaseModel):
    """One model turn plus the tool calls it triggered."""

    text: str = ""
    tool_calls: list[ToolCall] = []
    tool_results: list[ToolResult] = []
    finish_reason: str | None = None


class GenerationResult(BaseModel):
    """Complete result of a ``generate`` call."""

    text: str = ""
    steps: list[Step] = []
    response_messages: list[CanonicalMessage] = []
    finish_reason: str | None = None
    usage: dict[str, int] = {}

    def find_tool_result(self, tool_name: str) -> ToolResult | None:
        """Return the first successful result of *tool_name* across all steps."""
        for step in self.steps:
            for result in step.tool_results:
                if result.tool_name == tool_name and not result.is_error:
                    return result
        return None

    @classmethod
    def from_events(cls, events: list[StreamEvent]) -> GenerationResult:
        """Rebuild a result from a complete stream event sequence."""
        steps: list[Step] = []
        current = Step()
        finish_reason: str | None = None
        for event in events:
            if event.type == "start-step":
                current = Step()
            elif event.type == "text-delta":
                current.text += event.text
            elif event.type == "tool-call" and event.tool_call is not None:
                current.tool_calls.append(event.tool_call)
            elif event.type in ("tool-result", "tool-error") and event.tool_result is not None:
                current.tool_results.append(event.tool_result)
            elif event.type == "finish-step":
                current.finish_reason = event.finish_reason
                steps.append(current)
            elif event.type == "finish":
                finish_reason = event.finish_reason
        return cls(
            text=steps[-1].text if steps else "",
            steps=steps,
            response_messages=steps_to_messages(steps),
            finish_reason=finish_reason,
        )


def steps_to_messages(steps: list[Step]) -> list[CanonicalMessage]:
    """The assistant and tool messages a list of steps produced, in order."""
    messages: list[CanonicalMessage] = []
    for step in steps:
        messages.append(CanonicalMessage.assistant(step.text, tool_calls=step.tool_calls or None))
        messages.extend(CanonicalMessage.tool(result) for result in step.tool_results)
    return messages


StreamEventType = Literal[
    "start",
    "start-step",
    "text-delta",
    "tool-call",
    "tool-result",
    "tool-error",
    "finish-step",
    "finish",
]


class StreamEvent(BaseModel):
    """One event of a streamed run."""

    type: StreamEventType
    text: str = ""
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    finish_reason: str | None = None


class StreamHandle:
    """A single logical, replayable event stream.

    Events pulled from the source are buffered, so every consumer sees the
    whole sequence from the start no matter how much of it an earlier
    consumer already read.  A source failure is kept and re-raised to
    every consumer at the position it happened.

    Usage::

        handle = await agent.stream(prompt="hi")
        async for event in handle:
            ...
        text = await handle.text()  # replays the buffer, no new model call
    """

    def __init__(self, source: AsyncIterator[StreamEvent]) -> None:
        self._source = source
        self._buffer: list[StreamEvent] = []
        self._error: BaseException | None = None
        self._done = False
        self._lock = asyncio.Lock()

    @property
    def buffered(self) -> list[StreamEvent]:
        """Events pulled from the source so far."""
        return list(self._buffer)

    @property
    def done(self) -> bool:
        return self._done

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.events()

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Iterate over all events from the beginning."""
        index = 0
        while True:
            if index < len(self._buffer):
                yield self._buffer[index]
                index += 1
                continue
            if self._done:
                if self._error is not None:
                    raise self._error
                return
            await self._pull(index)

    async def _pull(self, index: int) -> None:
        async with self._lock:
            # Another consumer may have pulled while we waited.
            if index < len(self._buffer) or self._done:
                return
            try:
                event = await anext(self._source)
            except StopAsyncIteration:
                self._done = True
            except Exception as exc:
                self._error = exc
                self._done = True
            else:
                self._buffer.append(event)

    async def text_stream(self) -> AsyncIterator[str]:
        """Iterate over text deltas only."""
        async for event in self.events():
            if event.type == "text-delta":
                yield event.text

    async def text(self) -> str:
        """Text of the final step, draining the stream if needed."""
        return (await self.collect()).text

    async def collect(self) -> GenerationResult:
        """Drain the stream and fold it into a :class:`GenerationResult`."""
        events = [event async for event in self.events()]
        return GenerationResult.from_events(events)

    async def aclose(self) -> None:
        """Stop the source; buffered events stay replayable."""
        async with self._lock:
            if not self._done:
                self._done = True
                aclose: Callable[[], Any] | None = getattr(self._source, "aclose", None)
                if aclose is not None:
                    await aclose()
