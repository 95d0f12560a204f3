"""Tool contract — a described, schema-validated unit of work.

A tool declares a description for the model, a pydantic input schema, an
optional output schema and an ``execute(input, options)`` callable.  The
callable receives a :class:`ToolCallOptions` whose ``context`` is exactly
what the caller supplied and whose ``writer`` is the call's writer (or
``None``), as two separate fields.

Usage::

    class FactInput(BaseModel):
        topic: str
        fact: str

    @tool(FactInput)
    async def display_fact(input: FactInput, options: ToolCallOptions) -> str:
        \"\"\"Display a fact about animals.\"\"\"
        if options.writer:
            options.writer.status(f"Looking up {input.topic}")
        return f"The fact about {input.topic} is... {input.fact}."
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    import asyncio

    from taupo.core.interface.models import CanonicalMessage
    from taupo.core.tools.context import CallContext
    from taupo.core.writer import Writer

ToolExecute = Callable[[Any, "ToolCallOptions"], Any]


@dataclass(frozen=True)
class ToolCallOptions:
    """Per-invocation options handed to ``execute``."""

    tool_call_id: str
    context: Any = None
    writer: Writer | None = None
    messages: list[CanonicalMessage] = field(default_factory=list)
    abort_signal: asyncio.Event | None = None


class Tool:
    """A tool the model can call.

    The tool's name is the key it is registered under in an agent's toolset.
    """

    def __init__(
        self,
        *,
        description: str,
        input_schema: type[BaseModel],
        execute: ToolExecute,
        output_schema: type[BaseModel] | None = None,
    ) -> None:
        self.description = description
        self.input_schema = input_schema
        self.output_schema = output_schema
        self._execute = execute

    def function_schema(self, name: str) -> dict[str, Any]:
        """Return the OpenAI function schema for this tool under *name*."""
        return {
            "type": "function",
            "function": {
                "name": name,
                "description": self.description,
                "parameters": self.input_schema.model_json_schema(by_alias=True),
            },
        }

    def parse_input(self, arguments: dict[str, Any]) -> BaseModel:
        """Validate raw model arguments; raises :class:`pydantic.ValidationError`."""
        return self.input_schema.model_validate(arguments)

    async def invoke(
        self,
        input: BaseModel,
        context: CallContext,
        *,
        tool_call_id: str,
        messages: list[CanonicalMessage] | None = None,
        abort_signal: asyncio.Event | None = None,
    ) -> Any:
        """Unwrap the call envelope and run ``execute``.

        Supports plain, async and async-generator ``execute`` functions; for
        a generator the last yielded value is the final output.
        """
        user_context, writer = context.unwrap()
        options = ToolCallOptions(
            tool_call_id=tool_call_id,
            context=user_context,
            writer=writer,
            messages=list(messages or []),
            abort_signal=abort_signal,
        )

        result = self._execute(input, options)
        if inspect.isawaitable(result):
            result = await result
        elif isinstance(result, AsyncIterator):
            result = await _last(result)

        if self.output_schema is not None and not isinstance(result, self.output_schema):
            result = self.output_schema.model_validate(result)
        return result


async def _last(values: AsyncIterator[Any]) -> Any:
    last: Any = None
    async for value in values:
        last = value
    return last


def tool(
    input_schema: type[BaseModel],
    *,
    description: str | None = None,
    output_schema: type[BaseModel] | None = None,
) -> Callable[[ToolExecute], Tool]:
    """Decorator turning an ``execute(input, options)`` function into a :class:`Tool`.

    The description defaults to the function's docstring.
    """

    def decorator(fn: ToolExecute) -> Tool:
        text = description if description is not None else inspect.getdoc(fn) or ""
        return Tool(
            description=text,
            input_schema=input_schema,
            execute=fn,
            output_schema=output_schema,
        )

    return decorator
