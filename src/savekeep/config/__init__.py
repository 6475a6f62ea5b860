"""Configuration loading, schema, and defaults."""

from savekeep.config.loader import CONFIG_FILENAME, ConfigError, load_config
from savekeep.config.schema import GameConfig, RedirectConfig, SaveKeepConfig

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GameConfig",
    "RedirectConfig",
    "SaveKeepConfig",
    "load_config",
]
