"""taupo — hierarchical agent routing with a hidden per-call writer."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from taupo.core.agent.agent import Agent as Agent
    from taupo.core.agent.models import AgentInfoNode as AgentInfoNode
    from taupo.core.agent.models import CallParameters as CallParameters
    from taupo.core.agent.router import RouterAgent as RouterAgent
    from taupo.core.agent.ui_stream import create_agent_ui_stream as create_agent_ui_stream
    from taupo.core.artifact import artifact as artifact
    from taupo.core.tools.tool import Tool as Tool
    from taupo.core.tools.tool import ToolCallOptions as ToolCallOptions
    from taupo.core.tools.tool import tool as tool
    from taupo.server.app import AgentEntry as AgentEntry
    from taupo.server.app import create_app as create_app

_EXPORTS = {
    "Agent": "taupo.core.agent.agent",
    "AgentInfoNode": "taupo.core.agent.models",
    "CallParameters": "taupo.core.agent.models",
    "RouterAgent": "taupo.core.agent.router",
    "create_agent_ui_stream": "taupo.core.agent.ui_stream",
    "artifact": "taupo.core.artifact",
    "Tool": "taupo.core.tools.tool",
    "ToolCallOptions": "taupo.core.tools.tool",
    "tool": "taupo.core.tools.tool",
    "AgentEntry": "taupo.server.app",
    "create_app": "taupo.server.app",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'taupo' has no attribute {name!r}")
