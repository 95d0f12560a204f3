"""Project configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from taupo.errors import ConfigError
from taupo.sdk.models import ProjectConfig

CONFIG_FILENAME = "taupo.yaml"


class ConfigLoader:
    """Load and validate a ``taupo.yaml`` file into a :class:`ProjectConfig`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def discover(cls, start: Path | None = None) -> ConfigLoader | None:
        """Find the nearest ``taupo.yaml`` in *start* or its parents."""
        directory = (start or Path.cwd()).resolve()
        for candidate in (directory, *directory.parents):
            path = candidate / CONFIG_FILENAME
            if path.is_file():
                return cls(path)
        return None

    def load(self) -> ProjectConfig:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing.  An empty file
        yields the default configuration.

        Raises:
            ConfigError: On read errors, YAML parse errors or schema
                validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error in {self._path}: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._path} must contain a mapping")

        try:
            return ProjectConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {self._path}: {exc}") from exc
