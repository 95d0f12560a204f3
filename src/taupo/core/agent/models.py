"""Agent data model — identity, call parameters and the introspection tree."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from taupo.core.interface.models import CanonicalMessage, coerce_messages
from taupo.core.writer import Writer  # noqa: TC001
from taupo.errors import InvalidCallError


class AgentIdentity(BaseModel):
    """Who an agent is, as far as routing and discovery are concerned.

    ``capabilities`` is free text a router feeds to its model; it is never
    enforced.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    capabilities: str
    model_id: str | None = None


class AgentInfoNode(BaseModel):
    """Read-only description of an agent and its descendants."""

    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True)

    type: Literal["agent", "router"]
    name: str
    capabilities: str
    model_id: str | None = Field(default=None, alias="model")
    tools: list[str] | None = None
    sub_agents: list[AgentInfoNode] | None = Field(default=None, alias="subAgents")


@dataclass
class CallParameters:
    """Parameters for one ``generate`` / ``stream`` call.

    Exactly one of ``prompt`` and ``messages`` must be given.  ``context``
    is the caller's own tool-call context; ``options`` are extra completion
    kwargs for this call only.  The same object is handed unchanged to
    whichever sub-agent a router delegates to.
    """

    prompt: str | list[Any] | None = None
    messages: list[Any] | None = None
    options: dict[str, Any] | None = None
    context: Any = None
    abort_signal: asyncio.Event | None = None
    max_messages_in_context: int | None = None
    writer: Writer | None = None

    def validate(self) -> None:
        """Raise :class:`InvalidCallError` unless exactly one well-typed input is set."""
        if self.prompt is None and self.messages is None:
            msg = 'Call must include either "prompt" or "messages"'
            raise InvalidCallError(msg)
        if self.prompt is not None and self.messages is not None:
            msg = 'Call must not include both "prompt" and "messages"'
            raise InvalidCallError(msg)
        if self.prompt is not None and not isinstance(self.prompt, (str, list)):
            msg = f'"prompt" must be a string or a list of messages, got {type(self.prompt).__name__}'
            raise InvalidCallError(msg)
        if self.messages is not None and not isinstance(self.messages, list):
            msg = f'"messages" must be a list, got {type(self.messages).__name__}'
            raise InvalidCallError(msg)
        if self.options is not None and not isinstance(self.options, dict):
            msg = f'"options" must be an object, got {type(self.options).__name__}'
            raise InvalidCallError(msg)
        limit = self.max_messages_in_context
        # bool is an int subclass
        if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
            msg = "max_messages_in_context must be a positive integer"
            raise InvalidCallError(msg)

    def input_messages(self) -> list[CanonicalMessage]:
        """The call's conversation in canonical form (not windowed)."""
        if isinstance(self.prompt, str):
            return [CanonicalMessage.user(self.prompt)]
        raw = self.prompt if self.prompt is not None else self.messages
        try:
            return coerce_messages(list(raw or []))
        except ValueError as exc:
            msg = f"Invalid message in call: {exc}"
            raise InvalidCallError(msg) from exc
