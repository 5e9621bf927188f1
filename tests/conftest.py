"""Shared test fixtures and factories."""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from clipbridge.config.models import ReaderConfig

FAKE_READER = Path(__file__).parent / "fake_reader.py"

ReaderConfigFactory = Callable[..., ReaderConfig]


def fake_reader_args(mode: str, *extra: str) -> list[str]:
    """Arguments that run the fake helper in the given mode."""
    return [str(FAKE_READER), mode, *extra]


@pytest.fixture
def reader_config() -> ReaderConfigFactory:
    """Build a ReaderConfig that spawns the fake helper.

    Grace periods are shortened so lifecycle tests stay fast.
    """

    def _make(mode: str = "normal", *extra: str, **overrides: Any) -> ReaderConfig:
        values: dict[str, Any] = {
            "executable_path": Path(sys.executable),
            "args": fake_reader_args(mode, *extra),
            "timeout": 5.0,
            "startup_grace": 0.2,
            "shutdown_grace": 2.0,
        }
        values.update(overrides)
        return ReaderConfig(**values)

    return _make


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config lookups away from the developer's real files."""
    monkeypatch.setenv("CLIPBRIDGE_HOME", str(tmp_path / "clipbridge-home"))
    monkeypatch.delenv("CLIPBOARD_EXE_PATH", raising=False)
    monkeypatch.delenv("CLIPBRIDGE_LOG_LEVEL", raising=False)
