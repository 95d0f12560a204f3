"""Resolve an app reference (``module:attribute``) to the agents it names."""

from __future__ import annotations

import importlib
import importlib.util
import re
import sys
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType

from taupo.core.agent.agent import Agent
from taupo.errors import ConfigError
from taupo.server.app import AgentEntry


def slugify(name: str) -> str:
    """``"Facts Agent"`` -> ``"facts-agent"``."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "agent"


def _import_module(target: str, base_dir: Path) -> ModuleType:
    if target.endswith(".py"):
        path = Path(target)
        if not path.is_absolute():
            path = base_dir / path
        if not path.is_file():
            raise ConfigError(f"App file not found: {path}")
        module_name = f"_taupo_app_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ConfigError(f"Cannot import {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            del sys.modules[module_name]
            raise ConfigError(f"Error while importing {path}: {exc}") from exc
        return module

    if str(base_dir) not in sys.path:
        sys.path.insert(0, str(base_dir))
    try:
        return importlib.import_module(target)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module {target!r}: {exc}") from exc


def normalise_agents(value: object, ref: str = "<app>") -> dict[str, Agent | AgentEntry]:
    """Turn a single agent or a key -> agent mapping into a registry."""
    if isinstance(value, Agent):
        return {slugify(value.name): value}
    if isinstance(value, Mapping):
        agents: dict[str, Agent | AgentEntry] = {}
        for key, item in value.items():
            if not isinstance(item, Agent | AgentEntry):
                raise ConfigError(f"{ref}[{key!r}] is not an Agent or AgentEntry")
            agents[str(key)] = item
        if not agents:
            raise ConfigError(f"{ref} contains no agents")
        return agents
    raise ConfigError(f"{ref} must be an Agent or a mapping of agents, got {type(value).__name__}")


def load_agents(ref: str, *, base_dir: Path | None = None) -> dict[str, Agent | AgentEntry]:
    """Import *ref* and return its agents keyed by URL key.

    *ref* is ``module:attribute`` or ``path/to/file.py:attribute``; relative
    paths and module lookups start from *base_dir* (default: cwd).

    Raises:
        ConfigError: The reference is malformed, cannot be imported, or
            does not name agents.
    """
    target, sep, attr = ref.rpartition(":")
    if not sep or not target or not attr:
        raise ConfigError(f"App reference must look like 'module:attribute', got {ref!r}")

    module = _import_module(target, (base_dir or Path.cwd()).resolve())
    try:
        value = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"{target!r} has no attribute {attr!r}") from exc
    return normalise_agents(value, ref)
