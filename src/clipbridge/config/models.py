"""Configuration models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ConfigError(Exception):
    """Configuration error."""

    pass


class ReaderConfig(BaseModel):
    """Configuration for the clipboard reader helper process.

    Durations are in seconds. ``retry_attempts`` and
    ``health_check_interval`` are carried for callers that implement retry or
    periodic probing; the manager itself never retries.
    """

    executable_path: Path
    args: list[str] = Field(default_factory=list)
    timeout: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=0)
    health_check_interval: float = Field(default=60.0, gt=0)

    # Time the helper must stay alive before startup counts as successful
    startup_grace: float = Field(default=1.0, ge=0)
    # Time allowed for a graceful exit after stdin closes, before a kill
    shutdown_grace: float = Field(default=5.0, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_to_file: bool = False
    retention_days: int = Field(default=7, ge=1)


class ClipBridgeConfig(BaseModel):
    """Root configuration model."""

    reader: ReaderConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
