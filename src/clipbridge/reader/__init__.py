"""Clipboard reader process manager and result types."""

from clipbridge.reader.errors import (
    ClipboardError,
    ProcessIOError,
    ProcessStartError,
    ProtocolError,
    RemoteError,
    RequestTimeoutError,
    SendError,
    ShutdownError,
)
from clipbridge.reader.manager import (
    ClipboardManager,
    ManagerEvent,
    ProcessExit,
)
from clipbridge.reader.types import (
    CLIPBOARD_FORMATS,
    ClipboardEmpty,
    ClipboardFormat,
    ClipboardImage,
    ClipboardResult,
    ClipboardText,
    normalize_result,
)

__all__ = [
    "CLIPBOARD_FORMATS",
    "ClipboardEmpty",
    "ClipboardError",
    "ClipboardFormat",
    "ClipboardImage",
    "ClipboardManager",
    "ClipboardResult",
    "ClipboardText",
    "ManagerEvent",
    "ProcessExit",
    "ProcessIOError",
    "ProcessStartError",
    "ProtocolError",
    "RemoteError",
    "RequestTimeoutError",
    "SendError",
    "ShutdownError",
    "normalize_result",
]
