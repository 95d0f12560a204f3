"""Tracing helpers — span names and attributes for agent calls.

Agents, routers, the tool loop and the model client all trace through
:func:`get_tracer`.  Without a configured SDK the OpenTelemetry API hands
back no-op tracers, so spans cost nothing unless a deployment opts in via
:func:`configure_telemetry` (``pip install taupo[otel]``), which ``taupo
serve`` and ``taupo run`` call when ``telemetry.enabled`` is set in
``taupo.yaml``.

Span layout for one routed call::

    agent.generate            (router, taupo.agent.type=router)
      loop.generate
        model.complete
        tool.execute          (selectAgent)
    router.delegate           (taupo.router.selected_agent=...)
      agent.generate          (leaf)
        ...
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Attribute keys
# ---------------------------------------------------------------------------

ATTR_AGENT_NAME = "taupo.agent.name"
ATTR_AGENT_TYPE = "taupo.agent.type"
ATTR_ROUTED_TO = "taupo.router.selected_agent"
ATTR_CALL_MODE = "taupo.call.mode"
ATTR_MESSAGE_COUNT = "taupo.call.message_count"
ATTR_STEP = "taupo.loop.step"
ATTR_MODEL = "taupo.model"
ATTR_PROVIDER = "taupo.provider"
ATTR_STREAMING = "taupo.streaming"
ATTR_TOKENS_PROMPT = "taupo.tokens.prompt"
ATTR_TOKENS_COMPLETION = "taupo.tokens.completion"
ATTR_TOKENS_TOTAL = "taupo.tokens.total"
ATTR_FINISH_REASON = "taupo.finish_reason"
ATTR_TOOL_NAME = "taupo.tool.name"
ATTR_TOOL_CALL_ID = "taupo.tool.call_id"

_INSTRUMENTATION_NAME = "taupo"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Tracer for *name* (default ``"taupo"``); a no-op until configured."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "taupo",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install a global tracer provider for this process.

    Parameters
    ----------
    service_name:
        Reported as the ``service.name`` resource attribute.
    export_to_console:
        Print finished spans as JSON on stdout.
    otlp_endpoint:
        Ship spans over OTLP/gRPC to this collector.

    Raises
    ------
    ImportError
        The ``otel`` extra is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        msg = "opentelemetry-sdk is required to export traces; install taupo[otel]"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]

    if export_to_console:
        _add_console_exporter(provider, SimpleSpanProcessor)
    if otlp_endpoint:
        _add_otlp_exporter(provider, BatchSpanProcessor, otlp_endpoint)

    trace.set_tracer_provider(provider)  # pyright: ignore[reportUnknownArgumentType]


def _add_console_exporter(provider: Any, processor_cls: Any) -> None:
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter  # pyright: ignore[reportMissingImports,reportUnknownVariableType]

    provider.add_span_processor(processor_cls(ConsoleSpanExporter()))


def _add_otlp_exporter(provider: Any, processor_cls: Any, endpoint: str) -> None:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        msg = "opentelemetry-exporter-otlp is required for OTLP export; install taupo[otel]"
        raise ImportError(msg) from exc

    provider.add_span_processor(processor_cls(OTLPSpanExporter(endpoint=endpoint)))
