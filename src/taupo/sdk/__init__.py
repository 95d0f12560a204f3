"""taupo SDK — project configuration and app loading."""

from taupo.sdk.config import CONFIG_FILENAME, ConfigLoader
from taupo.sdk.loader import load_agents, normalise_agents, slugify
from taupo.sdk.models import ProjectConfig, ServerSettings, TelemetrySettings

__all__ = [
    "CONFIG_FILENAME",
    "ConfigLoader",
    "ProjectConfig",
    "ServerSettings",
    "TelemetrySettings",
    "load_agents",
    "normalise_agents",
    "slugify",
]
