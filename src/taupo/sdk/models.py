"""Pydantic models for the ``taupo.yaml`` project file."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


class ServerSettings(BaseModel):
    """Where ``taupo serve`` listens."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    otlp_endpoint: str | None = None
    service_name: str = "taupo"


class ProjectConfig(BaseModel):
    """Top-level project configuration parsed from YAML.

    ``app`` points at the agents to serve, as ``module:attribute`` or
    ``path/to/file.py:attribute``.  The attribute may be a single agent or
    a mapping of URL key to agent.
    """

    app: str | None = None
    server: ServerSettings = Field(default_factory=ServerSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
