"""The read_clipboard tool."""

import logging
from typing import Any, assert_never

from pydantic import BaseModel, ConfigDict, ValidationError

from clipbridge.reader import (
    ClipboardEmpty,
    ClipboardError,
    ClipboardFormat,
    ClipboardImage,
    ClipboardManager,
    ClipboardResult,
    ClipboardText,
)
from clipbridge.tools.base import (
    ContentBlock,
    Tool,
    ToolResult,
    image_block,
    text_block,
)

logger = logging.getLogger(__name__)


class ReadClipboardInput(BaseModel):
    """Input accepted by the read_clipboard tool."""

    model_config = ConfigDict(extra="forbid")

    format: ClipboardFormat = "auto"


def result_to_content(result: ClipboardResult) -> list[ContentBlock]:
    """Translate a clipboard result into caller-facing content blocks."""
    if isinstance(result, ClipboardText):
        return [text_block(result.data)]
    if isinstance(result, ClipboardImage):
        return [image_block(result.data, result.mime_type)]
    if isinstance(result, ClipboardEmpty):
        return [text_block(result.message)]
    assert_never(result)


class ReadClipboardTool(Tool):
    """Reads the Windows clipboard through the helper process."""

    def __init__(self, manager: ClipboardManager) -> None:
        self._manager = manager

    @property
    def name(self) -> str:
        return "read_clipboard"

    @property
    def description(self) -> str:
        return "Read the current Windows clipboard content (text or image)"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "enum": ["auto", "text", "image"],
                    "default": "auto",
                    "description": (
                        "Format to read from clipboard (auto=detect best format, "
                        "text=force text, image=force image)"
                    ),
                },
            },
            "additionalProperties": False,
        }

    async def execute(self, input_data: dict[str, Any]) -> ToolResult:
        try:
            params = ReadClipboardInput.model_validate(input_data or {})
            result = await self._manager.read_clipboard(params.format)
        except ClipboardError as e:
            logger.warning("Clipboard read failed: %s", e.message)
            return ToolResult.error(e.message)
        except (ValidationError, ValueError) as e:
            logger.warning("Invalid read_clipboard input: %s", e)
            return ToolResult.error(f"Clipboard read failed: {e}")

        logger.info(
            "Read clipboard",
            extra={"clipboard.type": result.type, "clipboard.format": params.format},
        )
        return ToolResult.success(*result_to_content(result))
