"""Centralized path management for clipbridge.

Config and logs live under a single base directory, overridable with the
CLIPBRIDGE_HOME environment variable.

Default locations:
- Linux/macOS: ~/.clipbridge
- Windows: %USERPROFILE%\\.clipbridge
"""

import os
from pathlib import Path

ENV_VAR = "CLIPBRIDGE_HOME"

# Helper binary name, built from the clipboard-reader sources
READER_EXECUTABLE_NAME = "clipreader.exe"


def get_clipbridge_home() -> Path:
    """Get the base directory for all clipbridge data.

    Resolution order:
    1. CLIPBRIDGE_HOME environment variable (if set)
    2. Platform default (~/.clipbridge)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".clipbridge"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_clipbridge_home() / "config.toml"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_clipbridge_home() / "logs"


def get_default_executable_path() -> Path:
    """Where the helper lands when built next to a source checkout."""
    return Path.cwd().parent / "clipboard-reader" / READER_EXECUTABLE_NAME
