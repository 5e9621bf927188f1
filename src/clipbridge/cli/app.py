"""Main CLI application."""

import asyncio
import base64
import binascii
from pathlib import Path
from typing import Annotated, assert_never

import typer

from clipbridge.cli.console import console, dim, error, get_config, success
from clipbridge.config import ClipBridgeConfig
from clipbridge.logging import configure_logging
from clipbridge.reader import (
    ClipboardEmpty,
    ClipboardError,
    ClipboardImage,
    ClipboardManager,
    ClipboardResult,
    ClipboardText,
)

app = typer.Typer(
    name="clipbridge",
    help="clipbridge - Windows clipboard access from WSL",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


def _setup_logging(config: ClipBridgeConfig, use_rich: bool) -> None:
    configure_logging(
        level=config.logging.level,
        use_rich=use_rich,
        log_to_file=config.logging.log_to_file,
        retention_days=config.logging.retention_days,
    )


@app.command()
def serve(config: ConfigOption = None) -> None:
    """Run the MCP server on stdio."""
    from clipbridge.server import run_server

    cfg = get_config(config)
    _setup_logging(cfg, use_rich=True)
    try:
        asyncio.run(run_server(cfg))
    except KeyboardInterrupt:
        dim("Interrupted")


async def _read(config: ClipBridgeConfig, format: str) -> ClipboardResult:
    async with ClipboardManager(config.reader) as manager:
        return await manager.read_clipboard(format)  # type: ignore[arg-type]


@app.command()
def read(
    format: Annotated[
        str,
        typer.Option(
            "--format",
            "-f",
            help="auto, text or image",
        ),
    ] = "auto",
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write image data to this file",
        ),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Read the clipboard once and print it."""
    if format not in ("auto", "text", "image"):
        error(f"Invalid format '{format}'. Expected auto, text or image")
        raise typer.Exit(2)

    cfg = get_config(config)
    _setup_logging(cfg, use_rich=False)
    try:
        result = asyncio.run(_read(cfg, format))
    except ClipboardError as e:
        error(f"Error: {e.message}")
        raise typer.Exit(1) from None

    if isinstance(result, ClipboardText):
        # Clipboard text is printed verbatim, never as Rich markup
        console.print(result.data, markup=False, highlight=False, soft_wrap=True)
    elif isinstance(result, ClipboardImage):
        _write_image(result, output)
    elif isinstance(result, ClipboardEmpty):
        dim(result.message)
    else:
        assert_never(result)


def _write_image(result: ClipboardImage, output: Path | None) -> None:
    dims = ""
    if result.width is not None and result.height is not None:
        dims = f" {result.width}x{result.height}"
    summary = f"{result.mime_type}{dims}, {result.size} bytes"

    if output is None:
        console.print(f"Image on clipboard: {summary}", markup=False)
        dim("Use --output to save it")
        return

    try:
        payload = base64.b64decode(result.data, validate=True)
    except binascii.Error as e:
        error(f"Image data is not valid base64: {e}")
        raise typer.Exit(1) from None
    output.write_bytes(payload)
    success(f"Saved {summary} to {output}")


async def _health(config: ClipBridgeConfig) -> bool:
    manager = ClipboardManager(config.reader)
    try:
        await manager.start()
        return await manager.health_check()
    except ClipboardError as e:
        error(f"Error: {e.message}")
        return False
    finally:
        await manager.stop()


@app.command()
def health(config: ConfigOption = None) -> None:
    """Start the clipboard reader and check that it answers."""
    cfg = get_config(config)
    _setup_logging(cfg, use_rich=False)
    dim(f"Clipboard executable path: {cfg.reader.executable_path}")
    if asyncio.run(_health(cfg)):
        success("Health check passed")
        return
    error("Health check failed")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
