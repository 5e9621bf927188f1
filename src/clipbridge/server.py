"""MCP server exposing the clipboard over stdio."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ImageContent, TextContent

from clipbridge.config.models import ClipBridgeConfig
from clipbridge.reader import (
    ClipboardError,
    ClipboardManager,
    ManagerEvent,
    ProcessExit,
)
from clipbridge.tools.base import ContentBlock
from clipbridge.tools.clipboard import ReadClipboardTool

logger = logging.getLogger(__name__)

SERVER_NAME = "clip-to-wsl"

INSTRUCTIONS = """
Reads the Windows clipboard from WSL.

Use read_clipboard to fetch whatever the user just copied:
- format="auto" returns text or an image, whichever the clipboard holds
- format="text" or format="image" forces one kind
"""


def to_mcp_content(block: ContentBlock) -> TextContent | ImageContent:
    """Convert a tool content block to its MCP type."""
    if block["type"] == "image":
        return ImageContent(
            type="image", data=block["data"], mimeType=block["mimeType"]
        )
    return TextContent(type="text", text=block["text"])


def _log_unexpected_exit(exit_info: ProcessExit) -> None:
    logger.warning(
        "Clipboard process exited unexpectedly: code=%s, signal=%s",
        exit_info.code,
        exit_info.signal,
    )


def _log_manager_error(error: Exception) -> None:
    logger.error("ClipboardManager error: %s", error)


def create_server(
    config: ClipBridgeConfig,
    manager: ClipboardManager | None = None,
) -> FastMCP:
    """Build the MCP server around a clipboard manager.

    The manager is started when the server starts and stopped when it shuts
    down. A failing health check is logged but does not stop the server.
    """
    manager = manager or ClipboardManager(config.reader)
    tool = ReadClipboardTool(manager)

    manager.on(ManagerEvent.ERROR, _log_manager_error)
    manager.on(ManagerEvent.UNEXPECTED_EXIT, _log_unexpected_exit)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        logger.info(
            "Clipboard executable path: %s", config.reader.executable_path
        )
        try:
            await manager.start()
        except ClipboardError as e:
            # The next tool call retries the spawn
            logger.error("Failed to start ClipboardManager: %s", e)
        else:
            logger.info("ClipboardManager started successfully")
            if await manager.health_check():
                logger.info("Health check passed")
            else:
                logger.warning("Health check failed, but continuing anyway")

        try:
            yield
        finally:
            await manager.stop()
            logger.info("ClipboardManager stopped")

    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS, lifespan=lifespan)

    # No return annotation: the blocks go out as plain tool content
    @mcp.tool(name=tool.name, description=tool.description)
    async def read_clipboard(format: Literal["auto", "text", "image"] = "auto"):
        result = await tool.execute({"format": format})
        if result.is_error:
            raise ToolError(result.content[0]["text"])
        return [to_mcp_content(block) for block in result.content]

    return mcp


async def run_server(config: ClipBridgeConfig) -> None:
    """Serve MCP over stdio until the client disconnects."""
    server = create_server(config)
    logger.info("Starting ClipToWSL MCP Server")
    await server.run_stdio_async()
