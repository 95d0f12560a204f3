"""Tests for artifacts and the deep-merge reducer."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel, Field

from taupo.core.artifact import ARTIFACT_EVENT, artifact, deep_merge, merge_with_partial_defaults, partial_defaults
from taupo.core.tools.context import CallContext
from taupo.core.tools.tool import ToolCallOptions
from taupo.core.writer import BufferWriter
from taupo.errors import MissingWriterError, ValidationError


class Weather(BaseModel):
    city: str
    temperature: float | None = None
    status: str = "loading"
    hourly: list[float] = Field(default_factory=list)


class Profile(BaseModel):
    display_name: str = Field(default="anonymous", alias="displayName")


class TestDeepMerge:
    def test_nested_mappings_merge(self) -> None:
        assert deep_merge({"a": 1, "b": {"c": 1}}, {"b": {"d": 2}}) == {"a": 1, "b": {"c": 1, "d": 2}}

    def test_lists_replace(self) -> None:
        assert deep_merge({"b": [1, 2, 3]}, {"b": [9]}) == {"b": [9]}

    def test_scalars_and_none_replace(self) -> None:
        assert deep_merge({"a": {"x": 1}}, {"a": None}) == {"a": None}
        assert deep_merge({"a": 1}, {"a": "one"}) == {"a": "one"}
        assert deep_merge(5, {"a": 1}) == {"a": 1}

    def test_inputs_not_mutated(self) -> None:
        current = {"b": {"c": 1}}
        partial = {"b": {"d": 2}}
        merged = deep_merge(current, partial)
        merged["b"]["e"] = 3

        assert current == {"b": {"c": 1}}
        assert partial == {"b": {"d": 2}}


class TestPartialDefaults:
    def test_optional_fields_only(self) -> None:
        assert partial_defaults(Weather) == {"temperature": None, "status": "loading", "hourly": []}

    def test_alias_keys(self) -> None:
        assert partial_defaults(Profile) == {"displayName": "anonymous"}

    def test_non_model_schema(self) -> None:
        assert partial_defaults(dict[str, Any]) == {}

    def test_defaults_do_not_override_current(self) -> None:
        merged = merge_with_partial_defaults(Weather, {"city": "Oslo", "status": "done"}, {"temperature": 3.0})
        assert merged == {"city": "Oslo", "temperature": 3.0, "status": "done", "hourly": []}


class TestCreate:
    def test_emits_data_as_given(self) -> None:
        writer = BufferWriter()
        handle = artifact("weather", Weather).create({"city": "Paris"}, {"writer": writer})

        assert writer.events == [{"type": ARTIFACT_EVENT, "id": "weather", "data": {"city": "Paris"}}]
        assert handle.id == "weather"
        assert handle.current == {"city": "Paris", "temperature": None, "status": "loading", "hourly": []}

    def test_writer_from_tool_options(self) -> None:
        writer = BufferWriter()
        options = ToolCallOptions(tool_call_id="c1", context={"user": "u"}, writer=writer)

        artifact("weather", Weather).create({"city": "Rome"}, options)

        assert len(writer.events) == 1

    def test_writer_from_call_context(self) -> None:
        writer = BufferWriter()
        artifact("weather", Weather).create({"city": "Rome"}, CallContext(writer=writer))
        assert writer.events[0]["data"] == {"city": "Rome"}

    @pytest.mark.parametrize("context", [None, {}, {"writer": "not a writer"}, ToolCallOptions(tool_call_id="c")])
    def test_missing_writer(self, context: Any) -> None:
        with pytest.raises(MissingWriterError) as excinfo:
            artifact("weather", Weather).create({"city": "Paris"}, context)
        assert excinfo.value.artifact_id == "weather"

    def test_invalid_initial_data_emits_nothing(self) -> None:
        writer = BufferWriter()
        with pytest.raises(ValidationError) as excinfo:
            artifact("weather", Weather).create({"temperature": "hot"}, {"writer": writer})

        assert writer.events == []
        assert excinfo.value.artifact_id == "weather"
        assert excinfo.value.errors

    def test_declaration_is_reusable(self) -> None:
        weather = artifact("weather", Weather)
        first, second = BufferWriter(), BufferWriter()

        weather.create({"city": "A"}, {"writer": first})
        weather.create({"city": "B"}, {"writer": second})

        assert first.events[0]["data"] == {"city": "A"}
        assert second.events[0]["data"] == {"city": "B"}


class TestUpdate:
    def test_emits_full_merged_value(self) -> None:
        writer = BufferWriter()
        handle = artifact("doc", dict[str, Any]).create({"a": 1, "b": {"c": 1}}, {"writer": writer})

        handle.update({"b": {"d": 2}})

        assert writer.events[-1] == {"type": ARTIFACT_EVENT, "id": "doc", "data": {"a": 1, "b": {"c": 1, "d": 2}}}

    def test_successive_updates_accumulate(self) -> None:
        writer = BufferWriter()
        handle = artifact("weather", Weather).create({"city": "Paris"}, {"writer": writer})

        handle.update({"temperature": 18.0, "hourly": [17.0, 18.0]})
        handle.update({"hourly": [19.0], "status": "done"})

        assert [e["data"].get("status") for e in writer.events] == [None, "loading", "done"]
        assert handle.current == {"city": "Paris", "temperature": 18.0, "status": "done", "hourly": [19.0]}

    def test_invalid_update_keeps_previous_value(self) -> None:
        writer = BufferWriter()
        handle = artifact("weather", Weather).create({"city": "Paris"}, {"writer": writer})

        with pytest.raises(ValidationError):
            handle.update({"temperature": "very hot"})

        assert len(writer.events) == 1
        assert handle.current["temperature"] is None

    def test_current_is_a_copy(self) -> None:
        handle = artifact("doc", dict[str, Any]).create({"a": {"b": 1}}, {"writer": BufferWriter()})
        handle.current["a"]["b"] = 99
        assert handle.current == {"a": {"b": 1}}
