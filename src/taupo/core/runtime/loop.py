"""ToolLoopRunner — the default model-invocation loop.

Each step sends the history to the model, executes any tool calls it
asked for (sequentially, in the order issued), appends the results and
goes round again.  The loop ends when a step makes no tool calls, when a
tool listed in ``RunRequest.stop_after_tools`` succeeds, or after
``max_steps`` steps.

Bad tool calls (unknown name, input failing the schema) are fed back to
the model as error results.  A tool that *raises* ends the run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from taupo.core.interface.models import CanonicalMessage, ConversationHistory, ToolCall, ToolResult
from taupo.core.runtime.results import GenerationResult, Step, StreamEvent, StreamHandle
from taupo.errors import CallAbortedError, TaupoError, ToolExecutionError
from taupo.utils.telemetry import ATTR_AGENT_NAME, ATTR_STEP, ATTR_TOOL_CALL_ID, ATTR_TOOL_NAME, get_tracer

if TYPE_CHECKING:
    from taupo.core.interface.client import ModelClient
    from taupo.core.runtime.runner import RunRequest

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_MAX_STEPS = 20


class ToolLoopRunner:
    """:class:`~taupo.core.runtime.runner.ModelRunner` over a :class:`ModelClient`."""

    def __init__(self, client: ModelClient, *, max_steps: int = DEFAULT_MAX_STEPS) -> None:
        if max_steps < 1:
            msg = "max_steps must be at least 1"
            raise ValueError(msg)
        self.client = client
        self.max_steps = max_steps

    async def generate(self, request: RunRequest) -> GenerationResult:
        history = _initial_history(request)
        start = len(history)
        tools = _tool_schemas(request)
        steps: list[Step] = []
        usage: dict[str, int] = {}

        with _tracer.start_as_current_span("loop.generate") as span:
            span.set_attribute(ATTR_AGENT_NAME, request.agent_name)
            for index in range(self.max_steps):
                span.set_attribute(ATTR_STEP, index)
                _check_abort(request)
                response = await self.client.complete(history, tools=tools, **request.options)
                _add_usage(usage, response.metadata.get("usage"))
                history.append(response)

                step = Step(
                    text=response.text,
                    tool_calls=list(response.tool_calls or []),
                    finish_reason=response.metadata.get("finish_reason"),
                )
                for call in step.tool_calls:
                    _check_abort(request)
                    result = await self._run_tool(call, request, history)
                    step.tool_results.append(result)
                    history.append(CanonicalMessage.tool(result))
                steps.append(step)

                if _should_stop(step, request):
                    break

        return GenerationResult(
            text=steps[-1].text if steps else "",
            steps=steps,
            response_messages=history.messages[start:],
            finish_reason=steps[-1].finish_reason if steps else None,
            usage=usage,
        )

    def stream(self, request: RunRequest) -> StreamHandle:
        return StreamHandle(self._stream_events(request))

    async def _stream_events(self, request: RunRequest) -> AsyncIterator[StreamEvent]:
        history = _initial_history(request)
        tools = _tool_schemas(request)
        finish_reason: str | None = None

        yield StreamEvent(type="start")
        for _ in range(self.max_steps):
            _check_abort(request)
            yield StreamEvent(type="start-step")

            message: CanonicalMessage | None = None
            async with aclosing(self.client.stream(history, tools=tools, **request.options)) as chunks:
                async for chunk in chunks:
                    _check_abort(request)
                    if chunk.type == "text":
                        yield StreamEvent(type="text-delta", text=chunk.text)
                    else:
                        message = chunk.message
            if message is None:
                message = CanonicalMessage.assistant()
            history.append(message)

            step = Step(text=message.text, tool_calls=list(message.tool_calls or []))
            for call in step.tool_calls:
                yield StreamEvent(type="tool-call", tool_call=call)
                _check_abort(request)
                result = await self._run_tool(call, request, history)
                step.tool_results.append(result)
                history.append(CanonicalMessage.tool(result))
                yield StreamEvent(
                    type="tool-error" if result.is_error else "tool-result",
                    tool_result=result,
                )

            finish_reason = message.metadata.get("finish_reason")
            yield StreamEvent(type="finish-step", finish_reason=finish_reason)
            if _should_stop(step, request):
                break

        yield StreamEvent(type="finish", finish_reason=finish_reason)

    async def _run_tool(
        self,
        call: ToolCall,
        request: RunRequest,
        history: ConversationHistory,
    ) -> ToolResult:
        tool = request.tools.get(call.name)
        if tool is None:
            logger.warning("Model called unknown tool %r (agent %s)", call.name, request.agent_name)
            return ToolResult.from_text(
                call.id,
                f"Unknown tool: {call.name}",
                tool_name=call.name,
                input=call.arguments,
                is_error=True,
            )

        try:
            parsed = tool.parse_input(call.arguments)
        except PydanticValidationError as exc:
            return ToolResult.from_text(
                call.id,
                f"Invalid input for tool {call.name}: {exc}",
                tool_name=call.name,
                input=call.arguments,
                is_error=True,
            )

        with _tracer.start_as_current_span("tool.execute") as span:
            span.set_attribute(ATTR_TOOL_NAME, call.name)
            span.set_attribute(ATTR_TOOL_CALL_ID, call.id)
            try:
                output = await tool.invoke(
                    parsed,
                    request.context,
                    tool_call_id=call.id,
                    messages=[m for m in history if m.role != "system"],
                    abort_signal=request.abort_signal,
                )
            except TaupoError:
                raise
            except Exception as exc:
                raise ToolExecutionError(call.name, exc) from exc

        return ToolResult.from_text(
            call.id,
            _serialize_output(output),
            tool_name=call.name,
            input=call.arguments,
            output=output,
        )


def _initial_history(request: RunRequest) -> ConversationHistory:
    history = ConversationHistory()
    if request.instructions:
        history.append(CanonicalMessage.system(request.instructions))
    history.extend(list(request.messages))
    return history


def _tool_schemas(request: RunRequest) -> list[dict[str, Any]] | None:
    if not request.tools:
        return None
    return [tool.function_schema(name) for name, tool in request.tools.items()]


def _should_stop(step: Step, request: RunRequest) -> bool:
    if not step.tool_calls:
        return True
    return any(
        result.tool_name in request.stop_after_tools and not result.is_error
        for result in step.tool_results
    )


def _check_abort(request: RunRequest) -> None:
    if request.abort_signal is not None and request.abort_signal.is_set():
        raise CallAbortedError(request.agent_name)


def _add_usage(total: dict[str, int], usage: Any) -> None:
    if not isinstance(usage, dict):
        return
    for key, value in usage.items():
        if isinstance(value, int):
            total[key] = total.get(key, 0) + value


def _serialize_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, BaseModel):
        return output.model_dump_json(by_alias=True)
    return json.dumps(output, default=str)
