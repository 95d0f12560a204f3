"""Shared error types for the agent engine.

Routing anomalies (an unknown selected agent id, no selection at all) are
not errors: the router falls back to its own direct response.  Everything
here propagates unchanged to the immediate caller; nothing is retried.
"""

from __future__ import annotations

from typing import Any


class TaupoError(Exception):
    """Base error for all engine failures."""


class InvalidCallError(TaupoError):
    """Call parameters are malformed (neither or both of prompt/messages)."""


class AgentNotFoundError(TaupoError):
    """A routing target or boundary agent name does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Agent not found: {name}")


class AgentExecutionError(TaupoError):
    """The model-invocation loop (or a tool it ran) failed."""

    def __init__(self, agent_name: str, cause: BaseException | None = None, detail: str = "") -> None:
        self.agent_name = agent_name
        self.cause = cause
        self.detail = detail or (str(cause) if cause is not None else "")
        msg = f"Agent execution failed: {agent_name}"
        if self.detail:
            msg += f": {self.detail}"
        super().__init__(msg)


class ToolExecutionError(AgentExecutionError):
    """A tool's ``execute`` raised during a call."""

    def __init__(self, tool_name: str, cause: BaseException | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(f"tool {tool_name}", cause)


class CallAbortedError(TaupoError):
    """The call's abort signal was set before it finished."""

    def __init__(self, agent_name: str = "") -> None:
        self.agent_name = agent_name
        super().__init__(f"Call aborted: {agent_name}" if agent_name else "Call aborted")


class MissingWriterError(TaupoError):
    """An artifact was created without a writer in the tool context."""

    def __init__(self, artifact_id: str) -> None:
        self.artifact_id = artifact_id
        super().__init__(
            f"No writer found for artifact {artifact_id!r}. "
            "Are you streaming the agent with a writer attached?"
        )


class ValidationError(TaupoError):
    """An artifact value failed its schema check."""

    def __init__(self, artifact_id: str, errors: list[Any] | None = None) -> None:
        self.artifact_id = artifact_id
        self.errors = errors or []
        super().__init__(f"Artifact {artifact_id!r} failed validation: {self.errors}")


class ConfigError(TaupoError):
    """A project configuration file or agent reference could not be loaded."""
