"""Configuration models and parser for kitbridge.yaml."""

from kitbridge.config.models import KitbridgeConfig, SessionConfig, StderrConfig
from kitbridge.config.parser import ConfigError, load_config

__all__ = [
    "ConfigError",
    "KitbridgeConfig",
    "SessionConfig",
    "StderrConfig",
    "load_config",
]
