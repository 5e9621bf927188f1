"""JSON-RPC 2.0 protocol over newline-delimited stdio frames."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Longest slice of an undecodable line that is echoed into logs
_PREVIEW_CHARS = 200


# JSON-RPC 2.0 error codes
class ErrorCode:
    INTERNAL_ERROR = -32603


@dataclass
class RPCRequest:
    """JSON-RPC 2.0 request."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: int = 1
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
            "params": self.params,
            "id": self.id,
        }

    def to_line(self) -> bytes:
        """Serialize to a single newline-terminated frame."""
        payload = json.dumps(self.to_dict(), separators=(",", ":"))
        return (payload + "\n").encode("utf-8")


@dataclass
class RPCError:
    """JSON-RPC 2.0 error."""

    code: int
    message: str
    data: Any = None


@dataclass
class RPCResponse:
    """JSON-RPC 2.0 response.

    ``result`` is None both when the field is absent and when it is JSON null;
    the correlator treats either as a missing result.
    """

    id: int | str | None
    result: Any = None
    error: RPCError | None = None
    jsonrpc: str = "2.0"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RPCResponse":
        error = None
        err = data.get("error")
        if isinstance(err, dict):
            error = RPCError(
                code=err.get("code", ErrorCode.INTERNAL_ERROR),
                message=err.get("message", "Unknown error"),
                data=err.get("data"),
            )
        elif err is not None:
            error = RPCError(code=ErrorCode.INTERNAL_ERROR, message=str(err))
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=error,
            jsonrpc=data.get("jsonrpc", "2.0"),
        )


class LineDecoder:
    """Incremental decoder for newline-delimited JSON frames.

    Pipes split and coalesce writes arbitrarily, so bytes are buffered until a
    newline arrives. Only the tail after the last newline is kept between
    calls, which also keeps multi-byte UTF-8 sequences intact across chunks.

    Example:
        decoder = LineDecoder()
        decoder.feed(b'{"id": 1, "res')   # -> []
        decoder.feed(b'ult": {}}\\n')       # -> [{"id": 1, "result": {}}]
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending_bytes(self) -> int:
        """Number of buffered bytes not yet terminated by a newline."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        """Append a chunk and return every complete message it finished.

        Lines that are not valid JSON objects are logged and skipped.
        """
        self._buffer.extend(chunk)
        cut = self._buffer.rfind(b"\n")
        if cut < 0:
            return []

        complete = bytes(self._buffer[:cut])
        del self._buffer[: cut + 1]

        messages: list[dict[str, Any]] = []
        for raw_line in complete.split(b"\n"):
            line = raw_line.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            message = _parse_line(line)
            if message is not None:
                messages.append(message)
        return messages

    def reset(self) -> None:
        """Discard any buffered partial line."""
        if self._buffer:
            logger.warning(
                "Discarding incomplete frame",
                extra={"frame.bytes": len(self._buffer)},
            )
        self._buffer.clear()


def _parse_line(line: str) -> dict[str, Any] | None:
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning(
            "Failed to parse JSON response: %s (%s)", _preview(line), e.msg
        )
        return None
    if not isinstance(message, dict):
        logger.warning("Ignoring non-object JSON frame: %s", _preview(line))
        return None
    return message


def _preview(line: str) -> str:
    if len(line) <= _PREVIEW_CHARS:
        return line
    return f"{line[:_PREVIEW_CHARS]}... ({len(line)} chars)"
