"""JSON-RPC 2.0 framing for the clipboard reader's stdio channel."""

from clipbridge.rpc.protocol import (
    ErrorCode,
    LineDecoder,
    RPCError,
    RPCRequest,
    RPCResponse,
)

__all__ = [
    "ErrorCode",
    "LineDecoder",
    "RPCError",
    "RPCRequest",
    "RPCResponse",
]
