"""clipbridge - Windows clipboard access from WSL over a JSON-RPC helper."""

__version__ = "1.0.0"
