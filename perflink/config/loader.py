"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

  1. ``config/config.yaml`` -- defaults checked into the repo
  2. ``.env`` file          -- local overrides, not committed
  3. Environment variables  -- set by the scheduler at deploy time

:func:`load_config` reads the YAML file and deep-merges the values derived
from :class:`~perflink.config.settings.Settings` on top.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from perflink.config.settings import Settings
from perflink.utils.errors import ConfigurationError


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML file.  Defaults to ``settings.config_path``.
        settings: Pre-built settings; a fresh ``Settings()`` is read otherwise.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the file exists but is not a YAML mapping.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"cannot parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    else:
        yaml_config = {}

    env_overrides: dict = {
        "app": {
            "env": settings.app_env,
            "database_path": settings.database_path,
            "http_timeout_seconds": settings.http_timeout_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    if settings.job_time_budget_seconds > 0:
        env_overrides["pipeline"] = {
            "job": {"time_budget_seconds": settings.job_time_budget_seconds},
        }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
