"""Abstract tool interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

# A caller-facing content block, e.g. {"type": "text", "text": "..."} or
# {"type": "image", "data": "<base64>", "mimeType": "image/png"}
ContentBlock = dict[str, Any]


@dataclass
class ToolResult:
    """Result from tool execution."""

    content: list[ContentBlock] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def success(cls, *blocks: ContentBlock) -> "ToolResult":
        """Create a successful result."""
        return cls(content=list(blocks), is_error=False)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        """Create an error result with a single text block."""
        return cls(content=[text_block(f"Error: {message}")], is_error=True)

    def to_dict(self) -> dict[str, Any]:
        return {"content": list(self.content), "isError": self.is_error}


def text_block(text: str) -> ContentBlock:
    return {"type": "text", "text": text}


def image_block(data: str, mime_type: str) -> ContentBlock:
    return {"type": "image", "data": data, "mimeType": mime_type}


class Tool(ABC):
    """Abstract base class for tools exposed to an outer caller."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this tool."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description for the caller."""
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for tool input parameters."""
        ...

    @abstractmethod
    async def execute(self, input_data: dict[str, Any]) -> ToolResult:
        """Execute the tool with the given input.

        Args:
            input_data: Tool input matching the input_schema.

        Returns:
            Tool execution result.
        """
        ...

    def to_definition(self) -> dict[str, Any]:
        """Convert to tool definition format (name, description, inputSchema)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
