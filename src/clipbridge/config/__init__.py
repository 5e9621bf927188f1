"""Configuration for clipbridge."""

from clipbridge.config.loader import load_config
from clipbridge.config.models import (
    ClipBridgeConfig,
    ConfigError,
    LoggingConfig,
    ReaderConfig,
)

__all__ = [
    "ClipBridgeConfig",
    "ConfigError",
    "LoggingConfig",
    "ReaderConfig",
    "load_config",
]
