"""Shared fixtures: a scripted stand-in for ModelClient."""

from __future__ import annotations

import os
import re
from collections.abc import AsyncIterator
from typing import Any

import pytest

# Use litellm's bundled model cost map instead of fetching it over the network
# at import time (the fetch hangs/deadlocks under pytest without network access).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from taupo.core.interface.client import CompletionChunk
from taupo.core.interface.models import CanonicalMessage, ConversationHistory


class ScriptedClient:
    """Replays canned assistant messages instead of calling a model.

    Each ``complete``/``stream`` call consumes the next response; an
    exception in the script is raised at that point.  Every call is
    recorded with the history it received.
    """

    def __init__(self, *responses: CanonicalMessage | BaseException) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> CanonicalMessage:
        self._record(messages, tools, kwargs)
        return self._next()

    async def stream(
        self,
        messages: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[CompletionChunk]:
        self._record(messages, tools, kwargs)
        message = self._next()
        for word in re.findall(r"\S+\s*", message.text):
            yield CompletionChunk.text_delta(word)
        yield CompletionChunk.final(message)

    @property
    def sent_messages(self) -> list[list[CanonicalMessage]]:
        """Non-system messages of every call, in call order."""
        return [[m for m in call["messages"] if m.role != "system"] for call in self.calls]

    def _record(self, messages: ConversationHistory, tools: Any, kwargs: dict[str, Any]) -> None:
        self.calls.append({"messages": list(messages), "tools": tools, "kwargs": kwargs})

    def _next(self) -> CanonicalMessage:
        if not self.responses:
            msg = "ScriptedClient ran out of responses"
            raise AssertionError(msg)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def scripted() -> type[ScriptedClient]:
    """The :class:`ScriptedClient` class; call it with the responses to replay."""
    return ScriptedClient
