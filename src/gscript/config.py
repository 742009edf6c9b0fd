# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for gscript.

Config file lookup order:
1. Explicit path (-config)
2. $GSCRIPT_CONFIG
3. ~/.gscript.yaml (if it exists)

Example file:

    stdout: true
    condition_names: descriptive
    workdir: ~/projects
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from gscript.extensions import CONDITION_NAMES

DEFAULT_CONFIG_PATH = "~/.gscript.yaml"


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""

    pass


@dataclass
class GScriptConfig:
    """Settings shared by every run of the CLI.

    - log, stdout, stderr: channels printed when no flag asks for them
    - condition_names: "short" (file, env) or "descriptive" (file-exists, env-set)
    - workdir: working directory new execution states start in
    """

    log: bool = False
    stdout: bool = False
    stderr: bool = False
    condition_names: str = "short"
    workdir: str = "."

    def validate(self) -> None:
        """Validate field types and values.

        Raises:
            ConfigError: If validation fails.
        """
        for name in ("log", "stdout", "stderr"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be true or false, got: {getattr(self, name)!r}")
        if self.condition_names not in CONDITION_NAMES:
            valid = ", ".join(sorted(CONDITION_NAMES))
            raise ConfigError(f"condition_names must be one of {valid}, got: {self.condition_names!r}")
        if not isinstance(self.workdir, str) or not self.workdir.strip():
            raise ConfigError("workdir must be a non-empty string")


def _resolve_path(config_path: Optional[str]) -> Optional[Path]:
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return path

    env_path = os.environ.get("GSCRIPT_CONFIG")
    if env_path:
        path = Path(env_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path} (from $GSCRIPT_CONFIG)")
        return path

    path = Path(DEFAULT_CONFIG_PATH).expanduser()
    return path if path.exists() else None


def load_config(config_path: Optional[str] = None) -> GScriptConfig:
    """
    Load and validate the configuration.

    Args:
        config_path: Explicit config file path, or None to search defaults.

    Returns:
        GScriptConfig (defaults when no file is found).

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist.
        ConfigError: If the file is not valid YAML or has invalid settings.
    """
    path = _resolve_path(config_path)
    if path is None:
        return GScriptConfig()

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(GScriptConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(map(str, unknown))}")

    config = GScriptConfig(**data)
    config.validate()
    return config
