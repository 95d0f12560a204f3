"""Artifacts — schema-validated structured values streamed from inside a tool.

A tool creates an artifact with an initial value and then pushes partial
updates while it works.  Each update is deep-merged into the accumulated
value, re-validated, and written to the call's writer as a
``data-artifact`` event.

Usage::

    class Weather(BaseModel):
        city: str
        temperature: float | None = None
        status: str = "loading"

    weather_artifact = artifact("weather", Weather)

    @tool(WeatherInput)
    async def get_weather(input: WeatherInput, options: ToolCallOptions) -> str:
        handle = weather_artifact.create({"city": input.city}, options)
        handle.update({"temperature": 21.5, "status": "done"})
        return "done"
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from taupo.core.writer import Writer
from taupo.errors import MissingWriterError, ValidationError

ARTIFACT_EVENT = "data-artifact"


def deep_merge(current: Any, partial: Any) -> Any:
    """Merge *partial* onto *current*.

    Only two mappings are merged, key by key and recursively.  Anything
    else (lists, scalars, ``None``) in *partial* replaces *current* as a
    whole.  Neither argument is mutated.
    """
    if not (isinstance(current, Mapping) and isinstance(partial, Mapping)):
        return copy.deepcopy(partial)
    merged = {key: copy.deepcopy(value) for key, value in current.items()}
    for key, value in partial.items():
        merged[key] = deep_merge(merged[key], value) if key in merged else copy.deepcopy(value)
    return merged


def partial_defaults(schema: Any) -> dict[str, Any]:
    """Defaults a pydantic model declares for its optional fields.

    Keys are the fields' validation names (alias when set).  Schemas that
    are not pydantic models have no partial defaults.
    """
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        return {}
    defaults: dict[str, Any] = {}
    for name, info in schema.model_fields.items():
        if info.is_required():
            continue
        defaults[info.alias or name] = info.get_default(call_default_factory=True)
    return defaults


def merge_with_partial_defaults(schema: Any, current: Any, partial: Any) -> Any:
    """Merge *partial* onto *current*, filling in the schema's defaults first."""
    if not (isinstance(current, Mapping) and isinstance(partial, Mapping)):
        return copy.deepcopy(partial)
    return deep_merge(deep_merge(partial_defaults(schema), current), partial)


def _resolve_writer(context: Any) -> Writer | None:
    if isinstance(context, Mapping):
        writer = context.get("writer")
    else:
        writer = getattr(context, "writer", None)
    return writer if isinstance(writer, Writer) else None


class ArtifactHandle:
    """One live artifact; owned by a single tool execution."""

    def __init__(self, artifact: Artifact, writer: Writer, current: Any) -> None:
        self._artifact = artifact
        self._writer = writer
        self._current = current

    @property
    def id(self) -> str:
        return self._artifact.id

    @property
    def current(self) -> Any:
        """The merged, validated value (a copy)."""
        return copy.deepcopy(self._current)

    def update(self, partial: Any) -> None:
        """Merge *partial*, re-validate and emit the full merged value.

        Raises:
            ValidationError: The merged value does not fit the schema;
                nothing is emitted and the previous value is kept.
        """
        merged = merge_with_partial_defaults(self._artifact.output_schema, self._current, partial)
        self._artifact.validate(merged)
        self._current = merged
        self._writer.write({"type": ARTIFACT_EVENT, "id": self.id, "data": copy.deepcopy(merged)})


class Artifact:
    """Declares an artifact id and the schema its values must satisfy.

    ``output_schema`` may be a pydantic model or any type a pydantic
    :class:`~pydantic.TypeAdapter` accepts.  An :class:`Artifact` holds no
    per-call state, so one declaration can be shared by many tool calls.
    """

    def __init__(self, id: str, output_schema: Any) -> None:
        self.id = id
        self.output_schema = output_schema
        self._adapter: TypeAdapter[Any] = TypeAdapter(output_schema)

    def __repr__(self) -> str:
        return f"Artifact(id={self.id!r})"

    def validate(self, value: Any) -> None:
        try:
            self._adapter.validate_python(value)
        except PydanticValidationError as exc:
            raise ValidationError(self.id, exc.errors(include_url=False)) from exc

    def create(self, data: Any, context: Any) -> ArtifactHandle:
        """Validate *data* and emit it as the artifact's first value.

        *context* is whatever carries the call's writer: the tool's
        :class:`~taupo.core.tools.tool.ToolCallOptions` or a mapping with a
        ``"writer"`` key.  The event carries *data* as given; the handle
        keeps *data* merged over the schema's defaults.

        Raises:
            MissingWriterError: *context* carries no writer.
            ValidationError: *data* does not fit the schema.
        """
        writer = _resolve_writer(context)
        if writer is None:
            raise MissingWriterError(self.id)

        current = merge_with_partial_defaults(self.output_schema, {}, data)
        self.validate(current)
        writer.write({"type": ARTIFACT_EVENT, "id": self.id, "data": copy.deepcopy(data)})
        return ArtifactHandle(self, writer, current)


def artifact(id: str, output_schema: Any) -> Artifact:
    """Declare an artifact; see :class:`Artifact`."""
    return Artifact(id, output_schema)
