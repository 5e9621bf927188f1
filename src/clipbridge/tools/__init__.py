"""Tools exposed to outer callers."""

from clipbridge.tools.base import ContentBlock, Tool, ToolResult
from clipbridge.tools.clipboard import (
    ReadClipboardInput,
    ReadClipboardTool,
    result_to_content,
)

__all__ = [
    "ContentBlock",
    "ReadClipboardInput",
    "ReadClipboardTool",
    "Tool",
    "ToolResult",
    "result_to_content",
]
