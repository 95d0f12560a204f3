"""Agents — leaf agents, routers and their call/introspection types."""

from taupo.core.agent.agent import Agent
from taupo.core.agent.models import AgentIdentity, AgentInfoNode, CallParameters
from taupo.core.agent.router import SELECT_AGENT_TOOL, RouterAgent, build_routing_instructions
from taupo.core.agent.ui_stream import create_agent_ui_stream

__all__ = [
    "SELECT_AGENT_TOOL",
    "Agent",
    "AgentIdentity",
    "AgentInfoNode",
    "CallParameters",
    "RouterAgent",
    "build_routing_instructions",
    "create_agent_ui_stream",
]
