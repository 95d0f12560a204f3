"""Tools — the tool contract and the call-context envelope."""

from taupo.core.tools.context import CallContext
from taupo.core.tools.tool import Tool, ToolCallOptions, tool

__all__ = [
    "CallContext",
    "Tool",
    "ToolCallOptions",
    "tool",
]
