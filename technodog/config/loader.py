"""YAML configuration loader with Settings overrides.

Configuration is layered (later layers win):

  1. ``config/config.yaml`` -- agent tunables checked into the repo
  2. ``.env`` / environment -- via :class:`Settings`

``load_config`` reads the YAML file, then deep-merges the Settings-derived
values on top, so an environment variable always beats the YAML default.
"""

from pathlib import Path

import yaml

from technodog.config.settings import Settings


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  Defaults to
            ``settings.config_path``.
        settings: Already-built settings; a fresh instance is created when
            omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
            "timeout_seconds": settings.provider_timeout_seconds,
        },
        "storage": {
            "database_path": settings.database_path,
            "stale_run_minutes": settings.stale_run_minutes,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def agent_config(config: dict, agent_name: str) -> dict:
    """Return the ``agents.<agent_name>`` section, or an empty dict."""
    return dict((config.get("agents") or {}).get(agent_name) or {})


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
