"""Configuration loading (YAML + JSON schema)."""

from .loader import ConfigError, load_config

__all__ = [
    "ConfigError",
    "load_config",
]
