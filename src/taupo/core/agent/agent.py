"""Agent — a named, model-bound request handler with a fixed toolset.

An agent owns no conversation state.  Each call windows the caller's
messages, wraps the caller's context together with the writer in a
:class:`~taupo.core.tools.context.CallContext` and hands the whole thing
to its :class:`~taupo.core.runtime.runner.ModelRunner`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from taupo.core.agent.models import AgentIdentity, AgentInfoNode, CallParameters
from taupo.core.interface.client import ModelClient
from taupo.core.interface.config import ModelConfig
from taupo.core.runtime.loop import DEFAULT_MAX_STEPS, ToolLoopRunner
from taupo.core.runtime.results import StreamHandle
from taupo.core.runtime.runner import RunRequest
from taupo.core.tools.context import CallContext
from taupo.errors import AgentExecutionError, TaupoError
from taupo.utils.telemetry import (
    ATTR_AGENT_NAME,
    ATTR_AGENT_TYPE,
    ATTR_CALL_MODE,
    ATTR_MESSAGE_COUNT,
    get_tracer,
)

if TYPE_CHECKING:
    from taupo.core.runtime.results import GenerationResult, StreamEvent
    from taupo.core.runtime.runner import ModelRunner
    from taupo.core.tools.tool import Tool

_tracer = get_tracer(__name__)


def resolve_params(params: CallParameters | None, kwargs: dict[str, Any]) -> CallParameters:
    """Accept either a ready :class:`CallParameters` or its fields as kwargs."""
    if params is not None and kwargs:
        msg = "Pass either a CallParameters object or keyword arguments, not both"
        raise TypeError(msg)
    return params if params is not None else CallParameters(**kwargs)


class Agent:
    """A single model-bound agent.

    Usage::

        agent = Agent(
            name="Animal Facts Agent",
            capabilities="Handles random facts about animals",
            model="gemini/gemini-2.5-flash",
            instructions="Answer with a fact about animals.",
            tools={"displayFact": display_fact},
            max_messages_in_context=10,
        )
        result = await agent.generate(prompt="Tell me about owls")
        handle = await agent.stream(messages=history, writer=writer)
    """

    agent_type = "agent"

    def __init__(
        self,
        *,
        name: str,
        capabilities: str,
        model: str | ModelConfig,
        instructions: str = "",
        tools: dict[str, Tool] | None = None,
        max_messages_in_context: int | None = None,
        client: ModelClient | None = None,
        runner: ModelRunner | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        if max_messages_in_context is not None and max_messages_in_context < 1:
            msg = "max_messages_in_context must be a positive integer"
            raise ValueError(msg)

        self.model_config = model if isinstance(model, ModelConfig) else ModelConfig(model=model)
        self.info = AgentIdentity(
            name=name,
            capabilities=capabilities,
            model_id=self.model_config.model_id,
        )
        self.instructions = instructions
        self.tools: dict[str, Tool] = dict(tools or {})
        self.max_messages_in_context = max_messages_in_context
        self.runner: ModelRunner = runner or ToolLoopRunner(
            client or ModelClient(self.model_config),
            max_steps=max_steps,
        )

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def capabilities(self) -> str:
        return self.info.capabilities

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    async def generate(self, params: CallParameters | None = None, /, **kwargs: Any) -> GenerationResult:
        """Run the agent to completion.

        Raises:
            InvalidCallError: Neither or both of prompt/messages were given.
            AgentExecutionError: The model loop or a tool failed.
        """
        params = resolve_params(params, kwargs)
        request = self._build_request(params)

        with _tracer.start_as_current_span("agent.generate") as span:
            span.set_attribute(ATTR_AGENT_NAME, self.name)
            span.set_attribute(ATTR_AGENT_TYPE, self.agent_type)
            span.set_attribute(ATTR_CALL_MODE, "generate")
            span.set_attribute(ATTR_MESSAGE_COUNT, len(request.messages))
            try:
                return await self.runner.generate(request)
            except TaupoError:
                raise
            except Exception as exc:
                raise AgentExecutionError(self.name, exc) from exc

    async def stream(self, params: CallParameters | None = None, /, **kwargs: Any) -> StreamHandle:
        """Start the agent and return its event stream.

        Call-parameter errors raise here; failures while running surface
        from the stream as :class:`AgentExecutionError`.
        """
        params = resolve_params(params, kwargs)
        request = self._build_request(params)
        return StreamHandle(self._guard(request))

    def describe(self) -> AgentInfoNode:
        """Describe this agent as it is right now (never cached)."""
        return AgentInfoNode(
            type="agent",
            name=self.name,
            capabilities=self.capabilities,
            model_id=self.info.model_id,
            tools=list(self.tools),
        )

    def stop_after_tools(self) -> frozenset[str]:
        """Tool names whose success ends this agent's tool loop."""
        return frozenset()

    def _build_request(self, params: CallParameters) -> RunRequest:
        params.validate()
        messages = params.input_messages()

        limit = (
            params.max_messages_in_context
            if params.max_messages_in_context is not None
            else self.max_messages_in_context
        )
        if params.messages is not None and limit is not None:
            messages = messages[-limit:]

        return RunRequest(
            instructions=self.instructions,
            messages=messages,
            tools=dict(self.tools),
            context=CallContext(user_context=params.context, writer=params.writer),
            options=dict(params.options or {}),
            abort_signal=params.abort_signal,
            stop_after_tools=self.stop_after_tools(),
            agent_name=self.name,
        )

    async def _guard(self, request: RunRequest) -> AsyncIterator[StreamEvent]:
        # Not made current: the span stays open across this generator's yields.
        span = _tracer.start_span("agent.stream")
        span.set_attribute(ATTR_AGENT_NAME, self.name)
        span.set_attribute(ATTR_AGENT_TYPE, self.agent_type)
        span.set_attribute(ATTR_CALL_MODE, "stream")
        span.set_attribute(ATTR_MESSAGE_COUNT, len(request.messages))
        try:
            async for event in self.runner.stream(request):
                yield event
        except TaupoError as exc:
            span.record_exception(exc)
            raise
        except Exception as exc:
            span.record_exception(exc)
            raise AgentExecutionError(self.name, exc) from exc
        finally:
            span.end()
