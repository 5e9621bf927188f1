"""Tests for the clipboard reader process manager.

These run the fake helper in tests/fake_reader.py as a real child process.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from clipbridge.reader import (
    ClipboardEmpty,
    ClipboardError,
    ClipboardImage,
    ClipboardManager,
    ClipboardText,
    ManagerEvent,
    ProcessExit,
    ProcessIOError,
    ProcessStartError,
    ProtocolError,
    RemoteError,
    RequestTimeoutError,
    SendError,
    ShutdownError,
)
from clipbridge.rpc import RPCResponse


async def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def _record(manager: ClipboardManager) -> dict[str, list[Any]]:
    events: dict[str, list[Any]] = {event.value: [] for event in ManagerEvent}
    for event in ManagerEvent:
        manager.on(event, events[event.value].append)
    return events


class TestLifecycle:
    """Tests for start/stop and process supervision."""

    @pytest.mark.asyncio
    async def test_start_spawns_process_and_emits_started(self, reader_config):
        manager = ClipboardManager(reader_config())
        events = _record(manager)
        try:
            await manager.start()
            assert manager.is_running()
            assert manager.pid is not None
            assert events["started"] == [None]
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_start_when_running_is_noop(self, reader_config):
        manager = ClipboardManager(reader_config())
        events = _record(manager)
        try:
            await manager.start()
            pid = manager.pid
            await manager.start()
            assert manager.pid == pid
            assert len(events["started"]) == 1
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_concurrent_starts_spawn_once(self, reader_config, monkeypatch):
        spawned: list[tuple[Any, ...]] = []
        original = asyncio.create_subprocess_exec

        async def _counting(*args: Any, **kwargs: Any):
            spawned.append(args)
            return await original(*args, **kwargs)

        monkeypatch.setattr(asyncio, "create_subprocess_exec", _counting)
        manager = ClipboardManager(reader_config())
        try:
            await asyncio.gather(*(manager.start() for _ in range(5)))
            assert len(spawned) == 1
            assert manager.is_running()
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_concurrent_starts_share_failure(self, reader_config, monkeypatch):
        spawned: list[tuple[Any, ...]] = []
        original = asyncio.create_subprocess_exec

        async def _counting(*args: Any, **kwargs: Any):
            spawned.append(args)
            return await original(*args, **kwargs)

        monkeypatch.setattr(asyncio, "create_subprocess_exec", _counting)
        manager = ClipboardManager(reader_config("exit", startup_grace=1.0))

        results = await asyncio.gather(
            *(manager.start() for _ in range(3)), return_exceptions=True
        )

        assert len(spawned) == 1
        assert all(isinstance(r, ProcessStartError) for r in results)
        assert not manager.is_running()

    @pytest.mark.asyncio
    async def test_helper_exiting_during_startup_fails_start(self, reader_config):
        manager = ClipboardManager(reader_config("exit", startup_grace=1.0))
        events = _record(manager)

        with pytest.raises(ProcessStartError, match="failed to start"):
            await manager.start()

        assert not manager.is_running()
        assert events["started"] == []
        assert events["unexpected-exit"] == [ProcessExit(code=1, signal=None)]

    @pytest.mark.asyncio
    async def test_missing_executable_fails_start(self, tmp_path: Path, reader_config):
        config = reader_config(executable_path=tmp_path / "clipreader.exe", args=[])
        manager = ClipboardManager(config)
        events = _record(manager)

        with pytest.raises(ProcessStartError, match="spawn failed"):
            await manager.start()

        assert not manager.is_running()
        assert len(events["error"]) == 1
        assert isinstance(events["error"][0], ProcessStartError)

    @pytest.mark.asyncio
    async def test_stop_twice_is_noop(self, reader_config):
        manager = ClipboardManager(reader_config())
        events = _record(manager)
        await manager.start()

        await manager.stop()
        await manager.stop()

        assert not manager.is_running()
        assert events["stopped"] == [None]
        assert events["unexpected-exit"] == []

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, reader_config):
        manager = ClipboardManager(reader_config())
        events = _record(manager)
        await manager.stop()
        assert events["stopped"] == []

    @pytest.mark.asyncio
    async def test_stop_kills_helper_that_ignores_stdin_close(self, reader_config):
        manager = ClipboardManager(reader_config("stubborn", shutdown_grace=0.3))
        await manager.start()

        started = time.monotonic()
        await manager.stop()

        assert not manager.is_running()
        assert time.monotonic() - started < 3.0

    @pytest.mark.asyncio
    async def test_stop_fails_pending_requests(self, reader_config):
        manager = ClipboardManager(reader_config("silent"))
        await manager.start()
        request = asyncio.create_task(manager.read_clipboard())
        await _wait_for(lambda: manager.pending_count == 1)

        await manager.stop()

        with pytest.raises(ShutdownError, match="shutting down"):
            await request
        assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_request_during_stop_is_rejected(self, reader_config):
        manager = ClipboardManager(reader_config("stubborn", shutdown_grace=0.5))
        await manager.start()
        stopping = asyncio.create_task(manager.stop())
        await asyncio.sleep(0.05)

        with pytest.raises(ShutdownError):
            await manager.read_clipboard()

        assert manager.pending_count == 0
        await stopping

    @pytest.mark.asyncio
    async def test_request_after_stop_does_not_respawn(self, reader_config):
        manager = ClipboardManager(reader_config())
        await manager.start()
        await manager.stop()

        with pytest.raises(ShutdownError, match="stopped"):
            await manager.read_clipboard()

        assert manager.pid is None

    @pytest.mark.asyncio
    async def test_explicit_start_after_stop_reopens(self, reader_config):
        manager = ClipboardManager(reader_config())
        await manager.start()
        await manager.stop()

        await manager.start()
        try:
            assert await manager.read_clipboard("text") == ClipboardText(
                data="hello", encoding="utf-8", size=5
            )
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_unexpected_exit_fails_pending_and_notifies(self, reader_config):
        manager = ClipboardManager(reader_config("crash"))
        events = _record(manager)
        await manager.start()

        with pytest.raises(ProcessIOError, match="terminated"):
            await manager.read_clipboard()

        assert not manager.is_running()
        assert events["unexpected-exit"] == [ProcessExit(code=3, signal=None)]

        # Teardown already ran; stop has nothing left to do
        await manager.stop()
        assert events["stopped"] == []

    @pytest.mark.asyncio
    async def test_next_request_after_crash_respawns(
        self, tmp_path: Path, reader_config
    ):
        marker = tmp_path / "crashed"
        manager = ClipboardManager(reader_config("crash-once", str(marker)))
        try:
            with pytest.raises(ProcessIOError):
                await manager.read_clipboard()

            result = await manager.read_clipboard("text")
            assert result == ClipboardText(data="hello", encoding="utf-8", size=5)
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, reader_config):
        async with ClipboardManager(reader_config()) as manager:
            assert manager.is_running()
        assert not manager.is_running()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_start(self, reader_config):
        manager = ClipboardManager(reader_config())

        def _boom(_payload: Any) -> None:
            raise RuntimeError("listener failed")

        manager.on("started", _boom)
        try:
            await manager.start()
            assert manager.is_running()
        finally:
            await manager.stop()

    def test_off_removes_listener(self, reader_config):
        manager = ClipboardManager(reader_config())
        seen: list[Any] = []
        manager.on(ManagerEvent.STOPPED, seen.append)
        manager.off(ManagerEvent.STOPPED, seen.append)
        manager._emit(ManagerEvent.STOPPED)
        assert seen == []

    def test_unknown_event_name_rejected(self, reader_config):
        manager = ClipboardManager(reader_config())
        with pytest.raises(ValueError):
            manager.on("restarted", lambda _: None)


class TestRequests:
    """Tests for request correlation and result handling."""

    @pytest.mark.asyncio
    async def test_first_request_starts_process(self, reader_config):
        manager = ClipboardManager(reader_config())
        try:
            result = await manager.read_clipboard()
            assert manager.is_running()
            assert result == ClipboardText(data="hello", encoding="utf-8", size=5)
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_image_result_gets_defaults(self, reader_config):
        async with ClipboardManager(reader_config()) as manager:
            result = await manager.read_clipboard("image")

        assert isinstance(result, ClipboardImage)
        assert result.data == "aGVsbG8="
        assert result.mime_type == "image/png"
        assert result.size == 0
        assert (result.width, result.height) == (2, 1)

    @pytest.mark.asyncio
    async def test_request_ids_increment_from_one(self, reader_config):
        async with ClipboardManager(reader_config("id")) as manager:
            first = await manager.read_clipboard()
            second = await manager.read_clipboard()
            third = await manager.read_clipboard()

        assert [r.data for r in (first, second, third)] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_invalid_format_rejected_before_sending(self, reader_config):
        manager = ClipboardManager(reader_config())
        with pytest.raises(ValueError, match="Invalid clipboard format"):
            await manager.read_clipboard("html")  # type: ignore[arg-type]
        assert manager.pid is None

    @pytest.mark.asyncio
    async def test_remote_error_passes_through(self, reader_config):
        async with ClipboardManager(reader_config("error")) as manager:
            with pytest.raises(RemoteError) as exc_info:
                await manager.read_clipboard()

        assert exc_info.value.message == "Clipboard locked"
        assert exc_info.value.code == -32000
        assert exc_info.value.data == {"retry": True}

    @pytest.mark.asyncio
    async def test_null_result_is_protocol_error(self, reader_config):
        async with ClipboardManager(reader_config("null")) as manager:
            with pytest.raises(ProtocolError, match="missing result"):
                await manager.read_clipboard()

    @pytest.mark.asyncio
    async def test_unknown_type_fails_only_that_request(self, reader_config):
        async with ClipboardManager(reader_config("bogus")) as manager:
            text, image = await asyncio.gather(
                manager.read_clipboard("text"),
                manager.read_clipboard("image"),
                return_exceptions=True,
            )

        assert isinstance(text, ProtocolError)
        assert "Unknown result type: bogus" in str(text)
        assert isinstance(image, ClipboardImage)

    @pytest.mark.asyncio
    async def test_out_of_order_responses_matched_by_id(self, reader_config):
        async with ClipboardManager(reader_config("reverse")) as manager:
            text, image = await asyncio.gather(
                manager.read_clipboard("text"),
                manager.read_clipboard("image"),
            )

        assert isinstance(text, ClipboardText)
        assert isinstance(image, ClipboardImage)

    @pytest.mark.asyncio
    async def test_garbage_lines_are_dropped(self, reader_config, caplog):
        with caplog.at_level(logging.WARNING, logger="clipbridge.rpc"):
            async with ClipboardManager(reader_config("garbage")) as manager:
                first = await manager.read_clipboard("text")
                second = await manager.read_clipboard("image")

        assert isinstance(first, ClipboardText)
        assert isinstance(second, ClipboardImage)
        assert any("Failed to parse JSON" in r.message for r in caplog.records)
        assert any("non-object" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_frames_split_across_writes(self, reader_config):
        async with ClipboardManager(reader_config("split")) as manager:
            results = [await manager.read_clipboard("image") for _ in range(3)]

        assert all(isinstance(r, ClipboardImage) for r in results)

    @pytest.mark.asyncio
    async def test_timeout(self, reader_config):
        async with ClipboardManager(reader_config("silent", timeout=0.2)) as manager:
            with pytest.raises(RequestTimeoutError):
                await manager.read_clipboard()
            assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_late_response_after_timeout_is_ignored(self, reader_config, caplog):
        config = reader_config("late", timeout=0.2)
        with caplog.at_level(logging.WARNING, logger="clipbridge.reader"):
            async with ClipboardManager(config) as manager:
                with pytest.raises(RequestTimeoutError):
                    await manager.read_clipboard()
                await _wait_for(
                    lambda: any(
                        "unknown request id" in r.message for r in caplog.records
                    )
                )
                assert manager.is_running()
                assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_every_request_resolved_exactly_once(self, reader_config):
        async with ClipboardManager(reader_config("silent")) as manager:
            requests = [
                asyncio.create_task(manager.read_clipboard()) for _ in range(5)
            ]
            await _wait_for(lambda: manager.pending_count == 5)
        results = await asyncio.gather(*requests, return_exceptions=True)

        assert all(isinstance(r, ShutdownError) for r in results)
        assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_request_leaves_no_pending_entry(self, reader_config):
        async with ClipboardManager(reader_config("silent")) as manager:
            request = asyncio.create_task(manager.read_clipboard())
            await _wait_for(lambda: manager.pending_count == 1)
            request.cancel()
            with pytest.raises(asyncio.CancelledError):
                await request
            assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_blocked_write_leaves_no_pending_entry(
        self, reader_config
    ):
        config = reader_config("deaf", shutdown_grace=0.3)
        async with ClipboardManager(config) as manager:
            # Far larger than the pipe buffer, so drain() blocks
            request = asyncio.create_task(
                manager.send_request("read_clipboard", {"blob": "a" * 4_000_000})
            )
            await _wait_for(lambda: manager.pending_count == 1)
            await asyncio.sleep(0.2)
            assert not request.done()

            request.cancel()
            with pytest.raises(asyncio.CancelledError):
                await request
            assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_boolean_id_does_not_resolve_request_one(
        self, reader_config, caplog
    ):
        async with ClipboardManager(reader_config("silent")) as manager:
            request = asyncio.create_task(manager.read_clipboard())
            await _wait_for(lambda: manager.pending_count == 1)
            with caplog.at_level(logging.WARNING, logger="clipbridge.reader"):
                manager.handle_response(
                    RPCResponse.from_dict({"id": True, "result": {"type": "empty"}})
                )
            assert not request.done()
            assert manager.pending_count == 1
            assert "unknown request id: True" in caplog.text

        with pytest.raises(ShutdownError):
            await request

    @pytest.mark.asyncio
    async def test_write_failure_raises_send_error(self, reader_config, monkeypatch):
        async with ClipboardManager(reader_config()) as manager:
            stdin = manager._process.stdin

            def _broken(data: bytes) -> None:
                raise BrokenPipeError("pipe closed")

            monkeypatch.setattr(stdin, "write", _broken)

            with pytest.raises(SendError, match="pipe closed"):
                await manager.read_clipboard()
            assert manager.pending_count == 0

    @pytest.mark.asyncio
    async def test_send_request_without_parser_returns_raw_result(
        self, reader_config
    ):
        async with ClipboardManager(reader_config()) as manager:
            raw = await manager.send_request("read_clipboard", {"format": "text"})
        assert raw == {"type": "text", "data": "hello"}

    @pytest.mark.asyncio
    async def test_parser_exception_becomes_protocol_error(self, reader_config):
        def _parser(result: Any) -> Any:
            raise KeyError("width")

        async with ClipboardManager(reader_config()) as manager:
            with pytest.raises(ProtocolError, match="Failed to parse result"):
                await manager.send_request("read_clipboard", {}, _parser)

    @pytest.mark.asyncio
    async def test_stderr_is_published_as_error(self, reader_config, caplog):
        manager = ClipboardManager(reader_config("stderr"))
        errors: list[ClipboardError] = []
        manager.on(ManagerEvent.ERROR, errors.append)
        with caplog.at_level(logging.WARNING, logger="clipbridge.reader"):
            async with manager:
                assert isinstance(await manager.read_clipboard(), ClipboardText)
                await _wait_for(lambda: len(errors) == 1)

        assert "clipboard opened by another process" in errors[0].message
        assert any("stderr" in r.message for r in caplog.records)


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, reader_config):
        async with ClipboardManager(reader_config()) as manager:
            assert await manager.health_check() is True

    @pytest.mark.asyncio
    async def test_unhealthy_when_helper_errors(self, reader_config):
        async with ClipboardManager(reader_config("error")) as manager:
            assert await manager.health_check() is False


class TestHandleResponse:
    """Direct tests of response correlation, without a helper process."""

    def test_unknown_id_is_logged(self, reader_config, caplog):
        manager = ClipboardManager(reader_config())
        with caplog.at_level(logging.WARNING, logger="clipbridge.reader"):
            manager.handle_response(
                RPCResponse.from_dict({"id": 42, "result": {"type": "empty"}})
            )
        assert "unknown request id: 42" in caplog.text

    def test_non_integer_id_is_ignored(self, reader_config, caplog):
        manager = ClipboardManager(reader_config())
        with caplog.at_level(logging.WARNING, logger="clipbridge.reader"):
            manager.handle_response(RPCResponse.from_dict({"id": [1], "result": {}}))
        assert "unknown request id" in caplog.text

    def test_exit_from_signal(self):
        exit_info = ProcessExit.from_returncode(-9)
        assert exit_info == ProcessExit(code=None, signal="SIGKILL")

    def test_exit_from_code(self):
        assert ProcessExit.from_returncode(0) == ProcessExit(code=0, signal=None)


def test_empty_result_round_trip():
    assert ClipboardEmpty().to_dict() == {
        "type": "empty",
        "message": "Clipboard is empty",
    }
