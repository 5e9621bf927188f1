"""Clipboard result types and payload normalization."""

from dataclasses import dataclass
from typing import Any, Literal

from clipbridge.reader.errors import ProtocolError

ClipboardFormat = Literal["auto", "text", "image"]

CLIPBOARD_FORMATS: tuple[str, ...] = ("auto", "text", "image")

DEFAULT_ENCODING = "utf-8"
DEFAULT_IMAGE_MIME_TYPE = "image/png"
DEFAULT_EMPTY_MESSAGE = "Clipboard is empty"


@dataclass(frozen=True, slots=True)
class ClipboardText:
    """Text read from the clipboard."""

    data: str
    encoding: str = DEFAULT_ENCODING
    size: int = 0
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "data": self.data,
            "encoding": self.encoding,
            "size": self.size,
        }


@dataclass(frozen=True, slots=True)
class ClipboardImage:
    """Image read from the clipboard, base64 encoded."""

    data: str
    mime_type: str = DEFAULT_IMAGE_MIME_TYPE
    width: int | None = None
    height: int | None = None
    size: int = 0
    type: Literal["image"] = "image"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type,
            "data": self.data,
            "mimeType": self.mime_type,
            "size": self.size,
        }
        if self.width is not None:
            d["width"] = self.width
        if self.height is not None:
            d["height"] = self.height
        return d


@dataclass(frozen=True, slots=True)
class ClipboardEmpty:
    """Nothing usable on the clipboard."""

    message: str = DEFAULT_EMPTY_MESSAGE
    type: Literal["empty"] = "empty"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


ClipboardResult = ClipboardText | ClipboardImage | ClipboardEmpty


def normalize_result(raw: Any) -> ClipboardResult:
    """Validate a raw ``result`` payload and fill in defaults.

    Args:
        raw: The ``result`` member of a JSON-RPC response.

    Returns:
        The typed clipboard result.

    Raises:
        ProtocolError: If the payload has no known ``type`` or lacks a
            required field.
    """
    if not isinstance(raw, dict):
        raise ProtocolError("Result must be an object")

    result_type = raw.get("type")
    if not result_type:
        raise ProtocolError("Result missing type field")

    if result_type == "empty":
        return ClipboardEmpty(message=raw.get("message") or DEFAULT_EMPTY_MESSAGE)

    if result_type not in ("text", "image"):
        raise ProtocolError(f"Unknown result type: {result_type}")

    data = raw.get("data")
    if not isinstance(data, str):
        raise ProtocolError(
            f"{result_type.capitalize()} result missing or invalid data field"
        )

    if result_type == "text":
        return ClipboardText(
            data=data,
            encoding=raw.get("encoding") or DEFAULT_ENCODING,
            size=raw.get("size") or len(data),
        )
    return ClipboardImage(
        data=data,
        mime_type=raw.get("mimeType") or DEFAULT_IMAGE_MIME_TYPE,
        width=raw.get("width"),
        height=raw.get("height"),
        size=raw.get("size") or 0,
    )
