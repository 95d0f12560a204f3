"""Tests for the spans agents and routers emit."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest
from opentelemetry import trace

from taupo.core.agent.agent import Agent
from taupo.core.agent.router import SELECT_AGENT_TOOL, RouterAgent
from taupo.core.interface.models import CanonicalMessage, ToolCall
from taupo.errors import AgentExecutionError
from taupo.utils.telemetry import (
    ATTR_AGENT_NAME,
    ATTR_AGENT_TYPE,
    ATTR_CALL_MODE,
    ATTR_ROUTED_TO,
    ATTR_TOOL_NAME,
    configure_telemetry,
)

sdk_trace = pytest.importorskip("opentelemetry.sdk.trace")
sdk_export = pytest.importorskip("opentelemetry.sdk.trace.export")
in_memory = pytest.importorskip("opentelemetry.sdk.trace.export.in_memory_span_exporter")


@pytest.fixture(scope="module")
def provider() -> Any:
    # The global provider can only be set once per process.
    current = trace.get_tracer_provider()
    if isinstance(current, sdk_trace.TracerProvider):
        return current
    provider = sdk_trace.TracerProvider()
    trace.set_tracer_provider(provider)
    return provider


@pytest.fixture
def exporter(provider: Any) -> Any:
    exporter = in_memory.InMemorySpanExporter()
    processor = sdk_export.SimpleSpanProcessor(exporter)
    provider.add_span_processor(processor)
    yield exporter
    processor.shutdown()


def _named(exporter: Any, name: str) -> list[Any]:
    return [span for span in exporter.get_finished_spans() if span.name == name]


def _leaf(client: Any) -> Agent:
    return Agent(name="Animals", capabilities="Animal facts", model="openai/gpt-4o-mini", client=client)


def _router(leaf: Agent, client: Any) -> RouterAgent:
    return RouterAgent(name="Facts", model="openai/gpt-4o", sub_agents=[leaf], client=client)


def _select(agent_id: str) -> CanonicalMessage:
    return CanonicalMessage.assistant(
        "", tool_calls=[ToolCall(id="s1", name=SELECT_AGENT_TOOL, arguments={"agentId": agent_id})]
    )


class TestRoutedGenerate:
    async def test_delegate_span_wraps_sub_agent(self, scripted: Any, exporter: Any) -> None:
        leaf = _leaf(scripted(CanonicalMessage.assistant("Cheetahs are fast.")))
        router = _router(leaf, scripted(_select("Animals")))

        await router.generate(prompt="How fast is a cheetah?")

        router_span, leaf_span = sorted(_named(exporter, "agent.generate"), key=lambda s: s.start_time)
        [delegate] = _named(exporter, "router.delegate")

        assert router_span.attributes[ATTR_AGENT_NAME] == "Facts"
        assert router_span.attributes[ATTR_AGENT_TYPE] == "router"
        assert delegate.attributes[ATTR_AGENT_NAME] == "Facts"
        assert delegate.attributes[ATTR_ROUTED_TO] == "Animals"
        assert leaf_span.attributes[ATTR_AGENT_NAME] == "Animals"
        assert leaf_span.parent.span_id == delegate.context.span_id
        assert delegate.start_time >= router_span.end_time

    async def test_selection_traced_inside_router_call(self, scripted: Any, exporter: Any) -> None:
        leaf = _leaf(scripted(CanonicalMessage.assistant("ok")))
        router = _router(leaf, scripted(_select("Animals")))

        await router.generate(prompt="cheetah?")

        [tool_span] = _named(exporter, "tool.execute")
        [loop_span] = [s for s in _named(exporter, "loop.generate") if s.attributes[ATTR_AGENT_NAME] == "Facts"]
        assert tool_span.attributes[ATTR_TOOL_NAME] == SELECT_AGENT_TOOL
        assert tool_span.parent.span_id == loop_span.context.span_id

    async def test_no_delegate_span_when_answering_directly(self, scripted: Any, exporter: Any) -> None:
        router = _router(_leaf(scripted()), scripted(CanonicalMessage.assistant("I only know facts.")))

        await router.generate(prompt="Book me a flight")

        assert _named(exporter, "router.delegate") == []
        assert [s.attributes[ATTR_AGENT_NAME] for s in _named(exporter, "agent.generate")] == ["Facts"]


class TestStreamSpan:
    async def test_span_covers_iteration(self, scripted: Any, exporter: Any) -> None:
        handle = await _leaf(scripted(CanonicalMessage.assistant("Owls hoot."))).stream(prompt="owls?")

        assert _named(exporter, "agent.stream") == []

        assert await handle.text() == "Owls hoot."
        [span] = _named(exporter, "agent.stream")
        assert span.attributes[ATTR_AGENT_NAME] == "Animals"
        assert span.attributes[ATTR_CALL_MODE] == "stream"

    async def test_failure_recorded(self, scripted: Any, exporter: Any) -> None:
        handle = await _leaf(scripted(RuntimeError("provider down"))).stream(prompt="owls?")

        with pytest.raises(AgentExecutionError):
            await handle.text()

        [span] = _named(exporter, "agent.stream")
        assert [event.name for event in span.events] == ["exception"]

    async def test_routed_stream_ends_with_sub_agent_span(self, scripted: Any, exporter: Any) -> None:
        leaf = _leaf(scripted(CanonicalMessage.assistant("Cheetahs are fast.")))
        router = _router(leaf, scripted(_select("Animals")))

        handle = await router.stream(prompt="cheetah?")
        await handle.text()

        names = [s.attributes[ATTR_AGENT_NAME] for s in _named(exporter, "agent.stream")]
        assert names == ["Facts", "Animals"]
        [delegate] = _named(exporter, "router.delegate")
        assert delegate.attributes[ATTR_ROUTED_TO] == "Animals"


class TestConfigureTelemetry:
    def test_installs_provider_with_service_name(self) -> None:
        with patch("taupo.utils.telemetry.trace.set_tracer_provider") as set_provider:
            configure_telemetry(service_name="facts-api", export_to_console=False)

        [installed] = set_provider.call_args.args
        assert installed.resource.attributes["service.name"] == "facts-api"

    def test_raises_without_sdk(self) -> None:
        with patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}):
            with pytest.raises(ImportError, match="taupo\\[otel\\]"):
                configure_telemetry()

    def test_otlp_raises_without_exporter(self) -> None:
        with (
            patch.dict("sys.modules", {"opentelemetry.exporter.otlp.proto.grpc.trace_exporter": None}),
            patch("taupo.utils.telemetry.trace.set_tracer_provider") as set_provider,
        ):
            with pytest.raises(ImportError, match="opentelemetry-exporter-otlp"):
                configure_telemetry(export_to_console=False, otlp_endpoint="http://localhost:4317")
        set_provider.assert_not_called()
