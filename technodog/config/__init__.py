"""Configuration: pydantic-settings ``Settings`` plus the YAML loader."""

from technodog.config.loader import agent_config, load_config
from technodog.config.settings import Settings

__all__ = ["Settings", "agent_config", "load_config"]
