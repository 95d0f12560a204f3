"""RouterAgent — picks a sub-agent per request and hands the call over.

Every call runs the same small state machine::

    ROUTING ──selectAgent names a known sub-agent──▶ DELEGATED
       └──────no selection / unknown id────────────▶ RESPONDING_DIRECTLY

While ROUTING the router runs itself as a plain agent whose only tool is
``selectAgent`` (an enum over the sub-agent names).  On DELEGATED the
chosen sub-agent is re-invoked with the caller's original
:class:`CallParameters`, not the router's own output, which recurses
through nested routers until a leaf answers.  RESPONDING_DIRECTLY returns
the router's own reply.  Nothing survives between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field, create_model

from taupo.core.agent.agent import Agent, resolve_params
from taupo.core.tools.tool import Tool
from taupo.utils.telemetry import ATTR_AGENT_NAME, ATTR_ROUTED_TO, get_tracer

if TYPE_CHECKING:
    from taupo.core.agent.models import AgentInfoNode, CallParameters
    from taupo.core.interface.client import ModelClient
    from taupo.core.interface.config import ModelConfig
    from taupo.core.interface.models import ToolResult
    from taupo.core.runtime.results import GenerationResult, StreamHandle
    from taupo.core.runtime.runner import ModelRunner

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

SELECT_AGENT_TOOL = "selectAgent"
ROUTER_CAPABILITIES = "Routes requests to the appropriate sub-agent"
DEFAULT_CONFIDENCE_THRESHOLD = 0.7

STATUS_DETERMINING = "Determining sub-agent to route to..."
STATUS_EXECUTING = "Executing sub-agent..."


def build_routing_instructions(
    instructions: str,
    sub_agents: Sequence[Agent],
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> str:
    """Append the routing brief to the caller's own *instructions*."""
    lines: list[str] = []
    for agent in sub_agents:
        if isinstance(agent, RouterAgent):
            lines.append(f'- "{agent.name}" - has the following sub-agents:')
            lines.extend(
                f'  - "{sub.name}": {sub.capabilities}' for sub in agent.sub_agents.values()
            )
        else:
            lines.append(f'- "{agent.name}": {agent.capabilities}')
    available = "\n".join(lines)
    threshold = confidence_threshold

    return f"""{instructions}

<routing>
You are a routing coordinator. Read the conversation and decide which agent should handle it.

Available agents:
{available}

Making the decision:
- Choose a TOP-LEVEL agent by its exact quoted name, judging it by:
  * its own description (regular agents), or
  * the names and descriptions of its sub-agents (router agents)
- When the request fits one of a router's sub-agents, choose that PARENT router, never the sub-agent itself
- Score your confidence as a decimal between 0.0 and 1.0 (not 0-10, not 0-100, not 1-5),
  e.g. 0.95 (very confident), 0.75 (fairly confident), 0.45 (not confident)
- If confidence >= {threshold}: call the {SELECT_AGENT_TOOL} tool with a valid agentId copied exactly from the list above
- If confidence < {threshold}, or no agent fits: do NOT call {SELECT_AGENT_TOOL}; answer directly in text instead
- Never send an agentId of "undefined", "null" or any name missing from the list

Context rules:
- Always look at the last 2-3 messages for the current topic before deciding
- Follow-up questions usually belong to the topic already under discussion; route them there with confidence 0.9 or higher
- A question clearly about a different domain overrides the earlier topic
- Short questions such as "how do I...?", "what about...?" or "can I...?" almost always continue the current topic
- Ask for clarification only when the question is ambiguous AND the recent conversation gives no context
- Use the agent descriptions to break ties when there is no context; keep clarifying replies brief and natural
</routing>

<out_of_scope_handling>
When no available agent covers the request:
- Do NOT call the {SELECT_AGENT_TOOL} tool
- Reply briefly that you can only help with the topics your agents cover
- Summarise those topics in general terms
</out_of_scope_handling>"""


def _select_agent_tool(names: list[str]) -> Tool:
    choice: Any = Literal[tuple(names)]  # type: ignore[valid-type]
    select_input = create_model(
        "SelectAgentInput",
        agent_id=(
            choice,
            Field(alias="agentId", description="ID of agent to route to if confidence is above threshold"),
        ),
    )
    select_output = create_model(
        "SelectAgentOutput",
        agent_id=(choice, Field(alias="agentId", description="ID of agent to route to")),
    )

    async def execute(input: Any, options: Any) -> BaseModel:
        return select_output(agentId=input.agent_id)

    return Tool(
        description="Select an agent to route to when you have a confident choice",
        input_schema=select_input,
        output_schema=select_output,
        execute=execute,
    )


def selected_agent_id(result: ToolResult | None) -> str | None:
    """Pull ``agentId`` out of a select-agent tool result, if there is one."""
    if result is None or result.is_error:
        return None
    output = result.output
    if isinstance(output, BaseModel):
        output = output.model_dump(by_alias=True)
    if isinstance(output, Mapping):
        agent_id = output.get("agentId")
        if isinstance(agent_id, str):
            return agent_id
    return None


class RouterAgent(Agent):
    """An agent that delegates each request to one of its sub-agents.

    Sub-agents may themselves be routers.  The name → agent map is built
    once here and is read-only afterwards, so a router is safe to share
    across concurrent calls.

    Usage::

        router = RouterAgent(
            name="Facts Agent",
            model="gemini/gemini-2.5-flash",
            sub_agents=[animal_facts, geography_facts, history_facts],
        )
        result = await router.generate(prompt="How fast is a cheetah?")
    """

    agent_type = "router"

    def __init__(
        self,
        *,
        name: str,
        model: str | ModelConfig,
        sub_agents: Sequence[Agent],
        instructions: str = "",
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        max_messages_in_context: int | None = None,
        client: ModelClient | None = None,
        runner: ModelRunner | None = None,
        max_steps: int | None = None,
    ) -> None:
        if not 0.0 <= confidence_threshold <= 1.0:
            msg = f"confidence_threshold must be within [0, 1], got {confidence_threshold}"
            raise ValueError(msg)

        agents: dict[str, Agent] = {}
        for agent in sub_agents:
            if agent.name in agents:
                msg = f"Duplicate sub-agent name in router {name!r}: {agent.name!r}"
                raise ValueError(msg)
            agents[agent.name] = agent
        if not agents:
            msg = f"RouterAgent {name!r} needs at least one sub-agent"
            raise ValueError(msg)

        extra: dict[str, Any] = {} if max_steps is None else {"max_steps": max_steps}
        super().__init__(
            name=name,
            capabilities=ROUTER_CAPABILITIES,
            model=model,
            instructions=build_routing_instructions(instructions, list(agents.values()), confidence_threshold),
            tools={SELECT_AGENT_TOOL: _select_agent_tool(list(agents))},
            max_messages_in_context=max_messages_in_context,
            client=client,
            runner=runner,
            **extra,
        )
        self.confidence_threshold = confidence_threshold
        self._sub_agents: Mapping[str, Agent] = MappingProxyType(agents)
        _check_acyclic(self, ())

    @property
    def sub_agents(self) -> Mapping[str, Agent]:
        """Read-only name → sub-agent map, in construction order."""
        return self._sub_agents

    def stop_after_tools(self) -> frozenset[str]:
        return frozenset({SELECT_AGENT_TOOL})

    async def generate(self, params: CallParameters | None = None, /, **kwargs: Any) -> GenerationResult:
        """Route, then return the chosen sub-agent's result (or the router's own)."""
        params = resolve_params(params, kwargs)
        routed = await super().generate(params)

        agent = self._resolve(selected_agent_id(routed.find_tool_result(SELECT_AGENT_TOOL)))
        if agent is None:
            return routed

        with _tracer.start_as_current_span("router.delegate") as span:
            span.set_attribute(ATTR_AGENT_NAME, self.name)
            span.set_attribute(ATTR_ROUTED_TO, agent.name)
            return await agent.generate(params)

    async def stream(self, params: CallParameters | None = None, /, **kwargs: Any) -> StreamHandle:
        """Route while draining the router's own stream, then hand over.

        The router's own events are only inspected for the decision; once a
        sub-agent is chosen they are dropped and the sub-agent's stream is
        returned instead.  Without a decision the router's own, fully
        buffered stream is returned and replays from the start.
        """
        params = resolve_params(params, kwargs)
        params.validate()
        writer = params.writer

        if writer is not None:
            writer.status(STATUS_DETERMINING)

        own = await super().stream(params)
        agent_id: str | None = None
        async for event in own:
            if (
                event.type == "tool-result"
                and event.tool_result is not None
                and event.tool_result.tool_name == SELECT_AGENT_TOOL
            ):
                agent_id = selected_agent_id(event.tool_result)
                break

        agent = self._resolve(agent_id)
        if agent is None:
            return own
        await own.aclose()

        if writer is not None:
            writer.write({"type": "data-handoff", "data": {"agent": agent.name}})
            writer.status(STATUS_EXECUTING)

        with _tracer.start_as_current_span("router.delegate") as span:
            span.set_attribute(ATTR_AGENT_NAME, self.name)
            span.set_attribute(ATTR_ROUTED_TO, agent.name)
            return await agent.stream(params)

    def describe(self) -> AgentInfoNode:
        node = super().describe()
        return node.model_copy(
            update={
                "type": "router",
                "tools": None,
                "sub_agents": [agent.describe() for agent in self._sub_agents.values()],
            }
        )

    def _resolve(self, agent_id: str | None) -> Agent | None:
        if agent_id is None:
            return None
        agent = self._sub_agents.get(agent_id)
        if agent is None:
            logger.warning(
                "Router %r suggested an agent that doesn't exist: %r; answering directly",
                self.name,
                agent_id,
            )
        return agent


def _check_acyclic(agent: Agent, path: tuple[int, ...]) -> None:
    """Reject a sub-agent graph that loops back on itself.

    Sub-agents exist before the router holding them, so construction alone
    cannot close a loop; this only catches a graph rewired afterwards.
    """
    if id(agent) in path:
        msg = f"Agent graph has a cycle through {agent.name!r}"
        raise ValueError(msg)
    if isinstance(agent, RouterAgent):
        for sub in agent.sub_agents.values():
            _check_acyclic(sub, (*path, id(agent)))
