"""Errors raised by the clipboard reader manager."""

from typing import Any

from clipbridge.rpc.protocol import ErrorCode


class ClipboardError(Exception):
    """Clipboard read failed.

    Carries a JSON-RPC style ``code`` and optional ``data`` so errors reported
    by the helper process pass through unchanged.
    """

    def __init__(
        self,
        message: str,
        code: int = ErrorCode.INTERNAL_ERROR,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code})"


class ProcessStartError(ClipboardError):
    """The helper could not be spawned or died during the startup grace period."""


class ProcessIOError(ClipboardError):
    """The helper's stdio streams are unavailable."""


class RequestTimeoutError(ClipboardError):
    """No response arrived within the request timeout."""


class SendError(ClipboardError):
    """Writing a request to the helper's stdin failed."""


class ProtocolError(ClipboardError):
    """The helper sent a response that does not follow the protocol."""


class RemoteError(ClipboardError):
    """The helper answered with a JSON-RPC error object."""


class ShutdownError(ClipboardError):
    """The manager is stopping or has been stopped."""
