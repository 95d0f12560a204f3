"""Locate the project config and the agents it serves."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click

from taupo.cli_commands._output import configure_logging, err_console
from taupo.errors import ConfigError

if TYPE_CHECKING:
    from taupo.core.agent.agent import Agent
    from taupo.sdk.models import ProjectConfig
    from taupo.server.app import AgentEntry

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def project_options(fn: F) -> F:
    """Add ``--app`` and ``--config`` to a command."""
    fn = click.option(
        "--config",
        "config_path",
        default=None,
        type=click.Path(exists=True, dir_okay=False),
        help="Project file (default: nearest taupo.yaml).",
    )(fn)
    return click.option(
        "--app",
        "app_ref",
        default=None,
        help="Agents to load, as module:attribute (overrides the project file).",
    )(fn)


@dataclass
class Project:
    config: ProjectConfig
    agents: dict[str, Agent | AgentEntry]
    base_dir: Path

    def agent(self, key: str) -> Agent:
        entry = self.agents.get(key)
        if entry is None:
            known = ", ".join(self.agents) or "(none)"
            err_console.print(f"[red]Unknown agent:[/red] {key} (available: {known})")
            sys.exit(1)
        return getattr(entry, "agent", entry)


def load_project(app_ref: str | None, config_path: str | None) -> Project:
    """Load config and agents, exiting with status 1 on any error."""
    from taupo.sdk.config import ConfigLoader
    from taupo.sdk.loader import load_agents
    from taupo.sdk.models import ProjectConfig
    from taupo.utils.telemetry import configure_telemetry

    ctx = click.get_current_context(silent=True)
    verbose = bool(ctx and ctx.find_root().obj and ctx.find_root().obj.get("verbose"))

    try:
        loader = ConfigLoader(Path(config_path)) if config_path else ConfigLoader.discover()
        config = loader.load() if loader else ProjectConfig()
        base_dir = loader.path.parent if loader else Path.cwd()

        if not verbose:
            configure_logging(config.log_level)

        ref = app_ref or config.app
        if not ref:
            err_console.print("[red]No app configured.[/red] Pass --app module:attribute or set 'app' in taupo.yaml")
            sys.exit(1)
        agents = load_agents(ref, base_dir=base_dir)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    if config.telemetry.enabled:
        configure_telemetry(
            service_name=config.telemetry.service_name,
            export_to_console=False,
            otlp_endpoint=config.telemetry.otlp_endpoint,
        )

    logger.debug("Loaded %d agent(s) from %s", len(agents), ref)
    return Project(config=config, agents=agents, base_dir=base_dir)
