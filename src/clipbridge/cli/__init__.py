"""Command-line interface for clipbridge."""

from clipbridge.cli.app import app

__all__ = ["app"]
