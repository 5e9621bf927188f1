"""Clipboard reader process manager.

Runs the native clipboard reader as a long-lived child process and talks to it
with newline-delimited JSON-RPC 2.0 over its stdin/stdout.

All state lives on one event loop: reader tasks, timeout callbacks and
callers interleave but never run in parallel, so the pending table is guarded
only by ``dict.pop``. Whichever of response, timeout or teardown pops an entry
first is the one that resolves it.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import signal
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from clipbridge.config.models import ReaderConfig
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
from clipbridge.reader.types import (
    CLIPBOARD_FORMATS,
    ClipboardFormat,
    ClipboardResult,
    normalize_result,
)
from clipbridge.rpc.protocol import LineDecoder, RPCRequest, RPCResponse

logger = logging.getLogger(__name__)

READ_CLIPBOARD_METHOD = "read_clipboard"

# Upper bound on waiting for stdout EOF once the helper has exited
_DRAIN_TIMEOUT_SECONDS = 1.0
_READ_CHUNK_SIZE = 64 * 1024


class ManagerEvent(Enum):
    """Notifications published by ClipboardManager."""

    STARTED = "started"
    STOPPED = "stopped"
    ERROR = "error"
    UNEXPECTED_EXIT = "unexpected-exit"


# Listeners receive the event payload, or None for started/stopped
EventCallback = Callable[[Any], None]
ResultParser = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class ProcessExit:
    """How the helper process ended."""

    code: int | None
    signal: str | None

    @classmethod
    def from_returncode(cls, returncode: int | None) -> ProcessExit:
        # asyncio reports death by signal N as returncode -N
        if returncode is not None and returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = str(-returncode)
            return cls(code=None, signal=name)
        return cls(code=returncode, signal=None)


@dataclass(slots=True)
class PendingRequest:
    """A request written to the helper and not yet resolved."""

    id: int
    method: str
    future: asyncio.Future[Any]
    parser: ResultParser
    timeout: asyncio.TimerHandle


def _passthrough(result: Any) -> Any:
    return result


def _spawn_options() -> dict[str, Any]:
    """Keep the helper from opening a console window on Windows."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {}


class ClipboardManager:
    """Owns the clipboard reader process and its JSON-RPC channel.

    The process is started lazily by the first request, or explicitly with
    ``start()``. Concurrent ``start()`` calls share a single spawn. ``stop()``
    fails pending requests, closes stdin and kills the helper if it does not
    exit within the shutdown grace period.

    Example:
        async with ClipboardManager(ReaderConfig(executable_path=path)) as manager:
            result = await manager.read_clipboard("text")
    """

    def __init__(self, config: ReaderConfig) -> None:
        self._config = config
        self._process: asyncio.subprocess.Process | None = None
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._start_task: asyncio.Task[None] | None = None
        self._shutting_down = False
        self._stopped = False
        self._io_tasks: list[asyncio.Task[None]] = []
        self._exit_task: asyncio.Task[None] | None = None
        self._listeners: dict[ManagerEvent, list[EventCallback]] = {
            event: [] for event in ManagerEvent
        }

    @property
    def config(self) -> ReaderConfig:
        return self._config

    @property
    def pid(self) -> int | None:
        """PID of the running helper, if any."""
        return self._process.pid if self._process is not None else None

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    def is_running(self) -> bool:
        """Check if the helper process is alive."""
        return self._process is not None and self._process.returncode is None

    # -- notifications -----------------------------------------------------

    def on(self, event: ManagerEvent | str, callback: EventCallback) -> None:
        """Register a listener for a manager notification."""
        self._listeners[ManagerEvent(event)].append(callback)

    def off(self, event: ManagerEvent | str, callback: EventCallback) -> None:
        """Remove a previously registered listener."""
        listeners = self._listeners[ManagerEvent(event)]
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: ManagerEvent, payload: Any = None) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Error in %s listener", event.value)

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Start the helper process if it is not already running.

        Raises:
            ProcessStartError: If the helper cannot be spawned or exits during
                the startup grace period.
            ProcessIOError: If the helper's stdio pipes are unavailable.
        """
        if self._start_task is None:
            if self._process is not None:
                return
            self._stopped = False
            self._start_task = asyncio.create_task(self._spawn_process())
            self._start_task.add_done_callback(self._on_start_done)
        await asyncio.shield(self._start_task)

    def _on_start_done(self, task: asyncio.Task[None]) -> None:
        if self._start_task is task:
            self._start_task = None
        # Callers that awaited the start already saw the error
        if not task.cancelled():
            task.exception()

    async def _spawn_process(self) -> None:
        command = [str(self._config.executable_path), *self._config.args]
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **_spawn_options(),
            )
        except OSError as e:
            error = ProcessStartError(f"Process spawn failed: {e}")
            logger.error(
                "Failed to spawn clipboard reader",
                extra={"process.command": command[0], "error.message": str(e)},
            )
            self._emit(ManagerEvent.ERROR, error)
            raise error from e

        if process.stdin is None or process.stdout is None or process.stderr is None:
            process.kill()
            await process.wait()
            raise ProcessIOError("Failed to access process stdio streams")

        self._process = process
        decoder = LineDecoder()
        readers = [
            asyncio.create_task(self._read_stdout(process.stdout, decoder)),
            asyncio.create_task(self._read_stderr(process.stderr)),
        ]
        self._io_tasks = readers
        self._exit_task = asyncio.create_task(self._watch_exit(process, readers))
        logger.info(
            "Spawned clipboard reader",
            extra={"process.pid": process.pid, "process.command": command[0]},
        )

        # Fail fast if the helper dies before the grace period is over
        await asyncio.wait({self._exit_task}, timeout=self._config.startup_grace)
        if self._process is not process or process.returncode is not None:
            raise ProcessStartError("Process failed to start properly")

        self._emit(ManagerEvent.STARTED)

    async def stop(self) -> None:
        """Stop the helper process. Safe to call repeatedly."""
        process = self._process
        if process is None or self._shutting_down:
            return

        self._shutting_down = True
        self._stopped = True
        self._fail_pending(ShutdownError, "Manager shutting down")

        # Closing stdin is the helper's cue to exit on its own
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        try:
            await asyncio.wait_for(process.wait(), timeout=self._config.shutdown_grace)
        except TimeoutError:
            logger.warning(
                "Clipboard reader did not exit after %.1fs, killing it",
                self._config.shutdown_grace,
                extra={"process.pid": process.pid},
            )
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

        if self._exit_task is not None:
            await asyncio.wait({self._exit_task}, timeout=_DRAIN_TIMEOUT_SECONDS)

        if self._process is process:
            self._teardown(ProcessIOError, "Process terminated")
        self._shutting_down = False
        logger.info("Clipboard reader stopped", extra={"process.pid": process.pid})
        self._emit(ManagerEvent.STOPPED)

    async def _watch_exit(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
    ) -> None:
        returncode = await process.wait()
        # Responses written just before exit are still in the stdout pipe
        await asyncio.wait(readers, timeout=_DRAIN_TIMEOUT_SECONDS)

        exit_info = ProcessExit.from_returncode(returncode)
        logger.info(
            "Clipboard reader exited with code %s, signal %s",
            exit_info.code,
            exit_info.signal,
            extra={"process.pid": process.pid, "process.exit_code": returncode},
        )
        if self._process is not process or self._shutting_down:
            return

        self._teardown(ProcessIOError, "Process terminated")
        self._emit(ManagerEvent.UNEXPECTED_EXIT, exit_info)

    def _teardown(
        self, error_type: type[ClipboardError], message: str
    ) -> None:
        self._process = None
        current = asyncio.current_task()
        for task in (*self._io_tasks, self._exit_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._io_tasks = []
        self._exit_task = None
        self._fail_pending(error_type, message)

    def _fail_pending(self, error_type: type[ClipboardError], message: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for entry in pending:
            entry.timeout.cancel()
            if not entry.future.done():
                entry.future.set_exception(error_type(message))
        if pending:
            logger.debug("Failed %d pending requests: %s", len(pending), message)

    async def __aenter__(self) -> ClipboardManager:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -- stream readers ----------------------------------------------------

    async def _read_stdout(
        self, stream: asyncio.StreamReader, decoder: LineDecoder
    ) -> None:
        try:
            while chunk := await stream.read(_READ_CHUNK_SIZE):
                for message in decoder.feed(chunk):
                    self.handle_response(RPCResponse.from_dict(message))
        except OSError as e:
            logger.warning("Clipboard reader stdout failed: %s", e)
        decoder.reset()

    async def _read_stderr(self, stream: asyncio.StreamReader) -> None:
        try:
            while chunk := await stream.read(_READ_CHUNK_SIZE):
                text = chunk.decode("utf-8", errors="replace")
                for line in text.splitlines():
                    if line := line.strip():
                        logger.warning("Clipboard reader stderr: %s", line)
                        self._emit(
                            ManagerEvent.ERROR, ClipboardError(f"Process error: {line}")
                        )
        except OSError as e:
            logger.warning("Clipboard reader stderr failed: %s", e)

    # -- request correlation -----------------------------------------------

    async def send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        parser: ResultParser | None = None,
    ) -> Any:
        """Send a JSON-RPC request to the helper and await its result.

        Args:
            method: RPC method name.
            params: Method parameters.
            parser: Applied to the raw ``result``; a failure here fails the
                request with ProtocolError.

        Returns:
            The parsed result.

        Raises:
            ShutdownError: If the manager is stopping or stopped.
            RequestTimeoutError: If no response arrives within the timeout.
            SendError: If the request cannot be written.
            RemoteError: If the helper returns a JSON-RPC error.
            ProtocolError: If the response is malformed.
        """
        self._check_accepting()
        if self._process is None:
            await self.start()
        self._check_accepting()

        process = self._process
        if process is None or process.stdin is None:
            raise ProcessIOError("Process not available")

        loop = asyncio.get_running_loop()
        request = RPCRequest(method=method, params=params or {}, id=next(self._ids))
        future: asyncio.Future[Any] = loop.create_future()
        self._pending[request.id] = PendingRequest(
            id=request.id,
            method=method,
            future=future,
            parser=parser or _passthrough,
            timeout=loop.call_later(self._config.timeout, self._expire, request.id),
        )
        logger.debug(
            "Sending request", extra={"rpc.id": request.id, "rpc.method": method}
        )

        try:
            try:
                process.stdin.write(request.to_line())
                await process.stdin.drain()
            except OSError as e:
                # Teardown may already have failed this request while we drained
                if self._take(request.id) is not None:
                    raise SendError(f"Failed to send request: {e}") from e
            return await future
        except asyncio.CancelledError:
            # Cancelled while draining or while waiting for the response
            self._take(request.id)
            raise

    async def read_clipboard(
        self, format: ClipboardFormat = "auto"
    ) -> ClipboardResult:
        """Read the clipboard through the helper.

        Args:
            format: "auto" lets the helper pick, "text" or "image" force one.

        Raises:
            ValueError: If format is not one of auto, text, image.
            ClipboardError: If the read fails.
        """
        if format not in CLIPBOARD_FORMATS:
            raise ValueError(
                f"Invalid clipboard format '{format}'. "
                f"Expected one of: {', '.join(CLIPBOARD_FORMATS)}"
            )
        return await self.send_request(
            READ_CLIPBOARD_METHOD, {"format": format}, normalize_result
        )

    async def health_check(self) -> bool:
        """Check the helper answers a real clipboard read."""
        try:
            await self.read_clipboard()
        except ClipboardError as e:
            logger.warning("Health check failed: %s", e)
            return False
        return True

    def handle_response(self, response: RPCResponse) -> None:
        """Resolve the pending request matching a response."""
        # bool is an int subclass; a true id must not resolve request 1
        entry = self._take(response.id) if type(response.id) is int else None
        if entry is None:
            logger.warning("Received response for unknown request id: %s", response.id)
            return

        future = entry.future
        if future.done():
            return

        if response.error is not None:
            future.set_exception(
                RemoteError(
                    response.error.message,
                    code=response.error.code,
                    data=response.error.data,
                )
            )
            return

        if response.result is None:
            future.set_exception(ProtocolError("Response missing result"))
            return

        try:
            value = entry.parser(response.result)
        except ClipboardError as e:
            future.set_exception(e)
        except Exception as e:
            future.set_exception(ProtocolError(f"Failed to parse result: {e}"))
        else:
            future.set_result(value)

    def _check_accepting(self) -> None:
        if self._shutting_down:
            raise ShutdownError("Manager shutting down")
        if self._stopped:
            raise ShutdownError("Manager is stopped")

    def _take(self, request_id: int) -> PendingRequest | None:
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry.timeout.cancel()
        return entry

    def _expire(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        logger.warning(
            "Request timed out after %.1fs",
            self._config.timeout,
            extra={"rpc.id": request_id, "rpc.method": entry.method},
        )
        if not entry.future.done():
            entry.future.set_exception(RequestTimeoutError("Request timeout"))
