"""FastAPI application factory for serving agents over HTTP."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request, Response

from taupo import __version__
from taupo.core.agent.agent import Agent
from taupo.core.agent.ui_stream import ErrorFormatter
from taupo.server.errors import register_exception_handlers
from taupo.server.routes import router

logger = logging.getLogger(__name__)

Middleware = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.~-]+$")


@dataclass(frozen=True)
class AgentEntry:
    """An agent plus how to build its tool context for each request.

    ``context`` is either a fixed value or a callable receiving the
    incoming :class:`~fastapi.Request`.  ``on_error`` formats stream errors
    for the chat endpoint.
    """

    agent: Agent
    context: Any = None
    on_error: ErrorFormatter | None = None

    def resolve_context(self, request: Request) -> Any:
        return self.context(request) if callable(self.context) else self.context


def _normalise(agents: Mapping[str, Agent | AgentEntry]) -> dict[str, AgentEntry]:
    entries: dict[str, AgentEntry] = {}
    for key, value in agents.items():
        if not _KEY_PATTERN.match(key):
            msg = f"Agent key {key!r} is not usable as a URL path segment"
            raise ValueError(msg)
        if isinstance(value, AgentEntry):
            entries[key] = value
        elif isinstance(value, Agent):
            entries[key] = AgentEntry(agent=value)
        else:
            msg = f"Agent {key!r} must be an Agent or AgentEntry, got {type(value).__name__}"
            raise TypeError(msg)
    return entries


def create_app(
    agents: Mapping[str, Agent | AgentEntry],
    *,
    middleware: Sequence[Middleware] | None = None,
    title: str = "taupo",
) -> FastAPI:
    """Build the app serving *agents*, keyed by URL path segment.

    *middleware* functions run in the order given, the first one outermost.

    Usage::

        app = create_app({"facts": facts_router, "animals": animal_agent})
        uvicorn.run(app)
    """
    app = FastAPI(title=title, version=__version__)
    app.state.agents = _normalise(agents)

    for fn in reversed(list(middleware or [])):
        app.middleware("http")(fn)

    register_exception_handlers(app)
    app.include_router(router)

    logger.debug("Serving agents: %s", ", ".join(app.state.agents) or "(none)")
    return app
