"""The model-invocation contract agents delegate to.

An agent never talks to a model directly: it windows the conversation,
builds a :class:`RunRequest` and hands it to a :class:`ModelRunner`.  The
default runner is :class:`~taupo.core.runtime.loop.ToolLoopRunner`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from taupo.core.tools.context import CallContext

if TYPE_CHECKING:
    import asyncio

    from taupo.core.interface.models import CanonicalMessage
    from taupo.core.runtime.results import GenerationResult, StreamHandle
    from taupo.core.tools.tool import Tool


@dataclass
class RunRequest:
    """Everything one model-invocation run needs."""

    instructions: str
    messages: list[CanonicalMessage]
    tools: dict[str, Tool] = field(default_factory=dict)
    context: CallContext = field(default_factory=CallContext)
    options: dict[str, Any] = field(default_factory=dict)
    abort_signal: asyncio.Event | None = None
    stop_after_tools: frozenset[str] = frozenset()
    agent_name: str = ""


@runtime_checkable
class ModelRunner(Protocol):
    """Runs instructions + tools + messages against a model."""

    async def generate(self, request: RunRequest) -> GenerationResult:
        """Run to completion and return the full step trace."""
        ...

    def stream(self, request: RunRequest) -> StreamHandle:
        """Return a lazily-started event stream for the run."""
        ...
