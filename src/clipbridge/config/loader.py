"""Configuration loading from TOML files and environment variables."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from clipbridge.config.models import ClipBridgeConfig, ConfigError
from clipbridge.config.paths import get_config_path, get_default_executable_path

logger = logging.getLogger(__name__)

# Overrides [reader].executable_path
EXECUTABLE_ENV_VAR = "CLIPBOARD_EXE_PATH"


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.clipbridge/config.toml (or CLIPBRIDGE_HOME)
    ]


def _find_config_file(path: Path | None) -> Path | None:
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return config_path

    for default_path in _get_default_config_paths():
        expanded = default_path.expanduser()
        if expanded.exists():
            return expanded
    return None


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Resolve the helper executable from the environment or a default."""
    reader = config.setdefault("reader", {})
    if not isinstance(reader, dict):
        return config

    if env_path := os.environ.get(EXECUTABLE_ENV_VAR):
        reader["executable_path"] = env_path
    elif not reader.get("executable_path"):
        reader["executable_path"] = str(get_default_executable_path())
    return config


def load_config(path: Path | None = None) -> ClipBridgeConfig:
    """Load configuration from a TOML file and the environment.

    A config file is optional: without one, defaults apply and the helper path
    comes from CLIPBOARD_EXE_PATH or the source-checkout default.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated ClipBridgeConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the config file or resulting values are invalid.
    """
    raw_config: dict[str, Any] = {}

    config_path = _find_config_file(path)
    if config_path is not None:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
        logger.debug("Loaded config from %s", config_path)

    raw_config = _apply_env_overrides(raw_config)

    try:
        return ClipBridgeConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
