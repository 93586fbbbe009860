from __future__ import annotations

import asyncio

import pytest
from helpers import FakeProcess, FakeSpawner, RecordingSink

from cloud_cli_mcp.cli.executor import CliExecutor
from cloud_cli_mcp.cli.log_streamer import LineBuffer, LogStreamer, follow_logs_args
from cloud_cli_mcp.context.store import ContextStore


def _streamer(*outcomes: FakeProcess | BaseException) -> tuple[LogStreamer, FakeSpawner]:
    spawner = FakeSpawner(*outcomes)
    return LogStreamer(CliExecutor(ContextStore(), spawn=spawner)), spawner


def _lines(messages: list[dict[str, object]]) -> list[tuple[object, object]]:
    return [(m["lineNumber"], m["text"]) for m in messages if "lineNumber" in m]


def test_line_buffer_holds_partial_lines() -> None:
    buffer = LineBuffer()
    assert buffer.feed("foo\nbar") == ["foo"]
    assert buffer.feed("baz\n") == ["barbaz"]
    assert buffer.flush() is None


def test_line_buffer_skips_blank_lines_and_flushes_tail() -> None:
    buffer = LineBuffer()
    assert buffer.feed("a\n\n   \nb") == ["a"]
    assert buffer.flush() == "b"
    assert buffer.flush() is None


@pytest.mark.asyncio
async def test_stream_splits_chunks_into_numbered_lines() -> None:
    streamer, spawner = _streamer(FakeProcess(stdout=[b"foo\nbar", b"baz\n"]))
    sink = RecordingSink()

    await streamer.stream_logs("job-1", sink).wait()

    assert _lines(sink.messages) == [(1, "foo"), (2, "barbaz")]
    assert sink.messages[-1] == {"jobId": "job-1", "code": 0, "done": True}
    assert sink.closed is True
    assert spawner.calls[0][1] == tuple(follow_logs_args("job-1"))


@pytest.mark.asyncio
async def test_stream_flushes_unterminated_last_line() -> None:
    streamer, _ = _streamer(FakeProcess(stdout=[b"first\nlast"], returncode=3))
    sink = RecordingSink()

    await streamer.stream_logs("job-2", sink).wait()

    assert _lines(sink.messages) == [(1, "first"), (2, "last")]
    assert sink.messages[-1] == {"jobId": "job-2", "code": 3, "done": True}


@pytest.mark.asyncio
async def test_stream_decodes_utf8_split_across_chunks() -> None:
    encoded = "café\n".encode()
    streamer, _ = _streamer(FakeProcess(stdout=[encoded[:4], encoded[4:]]))
    sink = RecordingSink()

    await streamer.stream_logs("job-3", sink).wait()

    assert _lines(sink.messages) == [(1, "café")]


@pytest.mark.asyncio
async def test_stderr_decodes_utf8_split_across_chunks() -> None:
    proc = FakeProcess(stderr=[b"Fel: \xc3", b"\xa5tkomst nekad\n"], returncode=1)
    streamer, _ = _streamer(proc)
    sink = RecordingSink()

    await streamer.stream_logs("job-3b", sink).wait()

    stderr_text = "".join(str(m["text"]) for m in sink.messages if m.get("error"))
    assert stderr_text == "Fel: åtkomst nekad\n"
    assert sink.messages[-1] == {"jobId": "job-3b", "code": 1, "done": True}


@pytest.mark.asyncio
async def test_stderr_is_tagged_and_does_not_advance_line_numbers() -> None:
    streamer, _ = _streamer(FakeProcess(stdout=[b"one\n", b"two\n"], stderr=[b"warning!"]))
    sink = RecordingSink()

    stream = streamer.stream_logs("job-4", sink)
    await stream.wait()

    errors = [m for m in sink.messages if m.get("error")]
    assert errors == [{"jobId": "job-4", "error": True, "text": "warning!", "done": False}]
    assert _lines(sink.messages) == [(1, "one"), (2, "two")]
    assert stream.line_number == 2


@pytest.mark.asyncio
async def test_spawn_failure_sends_terminal_error() -> None:
    streamer, _ = _streamer(FileNotFoundError("litium-cloud"))
    sink = RecordingSink()

    await streamer.stream_logs("job-5", sink).wait()

    assert sink.messages == [
        {"jobId": "job-5", "error": True, "text": "litium-cloud", "done": True}
    ]
    assert sink.closed is True


@pytest.mark.asyncio
async def test_cancel_terminates_child() -> None:
    proc = FakeProcess(stdout=[b"started\n"], hang=True)
    streamer, _ = _streamer(proc)
    sink = RecordingSink()

    stream = streamer.stream_logs("job-6", sink)
    for _ in range(5):
        await asyncio.sleep(0)
    stream.cancel()
    stream.cancel()
    await stream.wait()

    assert proc.terminated is True
    assert _lines(sink.messages) == [(1, "started")]
    assert sink.messages[-1]["done"] is True
    assert sink.closed is True


@pytest.mark.asyncio
async def test_sink_failure_stops_stream() -> None:
    proc = FakeProcess(stdout=[b"line\n"], hang=True)
    streamer, _ = _streamer(proc)

    class BrokenSink(RecordingSink):
        async def send(self, message: dict[str, object]) -> None:
            raise RuntimeError("socket closed")

    sink = BrokenSink()
    await streamer.stream_logs("job-7", sink).wait()

    assert proc.terminated is True
    assert sink.closed is True


@pytest.mark.asyncio
async def test_cancel_kills_child_that_ignores_terminate() -> None:
    proc = FakeProcess(stdout=[b"started\n"], hang=True, ignore_terminate=True)
    spawner = FakeSpawner(proc)
    streamer = LogStreamer(CliExecutor(ContextStore(), spawn=spawner), kill_grace_seconds=0.05)
    sink = RecordingSink()

    stream = streamer.stream_logs("job-8", sink)
    for _ in range(5):
        await asyncio.sleep(0)
    stream.cancel()
    await asyncio.wait_for(stream.wait(), timeout=2)

    assert proc.terminated is True
    assert proc.killed is True
    assert sink.messages[-1] == {"jobId": "job-8", "code": -9, "done": True}
    assert sink.closed is True


class _BlockedStream:
    """Stdout that never produces data and records whether its reader was cancelled."""

    def __init__(self) -> None:
        self.cancelled = False
        self._never = asyncio.Event()

    async def read(self, n: int = -1) -> bytes:
        try:
            await self._never.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return b""

    def close(self) -> None:
        pass


@pytest.mark.asyncio
async def test_failing_stderr_pump_cancels_stdout_pump() -> None:
    proc = FakeProcess(stderr=[b"boom"])
    proc.stdout = _BlockedStream()
    streamer, _ = _streamer(proc)

    class StderrBrokenSink(RecordingSink):
        async def send(self, message: dict[str, object]) -> None:
            if message.get("error"):
                raise RuntimeError("socket closed")
            await super().send(message)

    sink = StderrBrokenSink()
    await asyncio.wait_for(streamer.stream_logs("job-9", sink).wait(), timeout=2)

    assert proc.stdout.cancelled is True
    assert proc.terminated is True
    assert sink.closed is True
