"""Follow a job's log output and forward it line by line to a sink."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
from typing import Any, Protocol

from cloud_cli_mcp.cli.executor import _REAP_TIMEOUT_SECONDS, CliExecutor

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


class LogSink(Protocol):
    async def send(self, message: dict[str, object]) -> None: ...

    async def close(self) -> None: ...


class LineBuffer:
    """Splits a text stream on ``\\n`` and holds back the trailing partial line."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> list[str]:
        self._pending += chunk
        *complete, self._pending = self._pending.split("\n")
        return [line for line in complete if line.strip()]

    def flush(self) -> str | None:
        rest, self._pending = self._pending, ""
        return rest if rest.strip() else None


def follow_logs_args(job_id: str) -> list[str]:
    return ["status", "logs", "--job", job_id, "--follow"]


class LogStream:
    """One running ``status logs --follow`` process bound to one sink.

    Line numbers start at 1 and count forwarded stdout lines only. A child
    that is still running ``kill_grace_seconds`` after ``cancel()`` is killed.
    """

    def __init__(
        self,
        executor: CliExecutor,
        job_id: str,
        sink: LogSink,
        *,
        kill_grace_seconds: float = _REAP_TIMEOUT_SECONDS,
    ) -> None:
        self.job_id = job_id
        self.kill_grace_seconds = kill_grace_seconds
        self._executor = executor
        self._sink = sink
        self._lines = LineBuffer()
        self._line_number = 0
        self._proc: Any = None
        self._cancelled = False
        self._task: asyncio.Task[None] | None = None
        self._reaper: asyncio.Task[None] | None = None

    def start(self) -> LogStream:
        self._task = asyncio.create_task(self._run(), name=f"log-stream-{self.job_id}")
        return self

    def cancel(self) -> None:
        """Terminate the child process. Safe to call more than once."""
        self._cancelled = True
        if self._proc is None or self._reaper is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._proc.terminate()
        self._reaper = asyncio.create_task(
            self._kill_after_grace(self._proc), name=f"log-stream-reaper-{self.job_id}"
        )

    async def wait(self) -> None:
        if self._task is not None:
            await self._task
        if self._reaper is not None:
            await self._reaper

    async def _kill_after_grace(self, proc: Any) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Log stream for job %s still running %ss after terminate; killing",
                self.job_id,
                self.kill_grace_seconds,
            )
            with contextlib.suppress(ProcessLookupError):
                proc.kill()

    @property
    def line_number(self) -> int:
        return self._line_number

    async def _run(self) -> None:
        try:
            try:
                self._proc = await self._executor.spawn(follow_logs_args(self.job_id))
            except OSError as exc:
                logger.warning("Failed to start log stream for job %s: %s", self.job_id, exc)
                await self._sink.send(
                    {"jobId": self.job_id, "error": True, "text": str(exc), "done": True}
                )
                return

            if self._cancelled:
                self.cancel()

            pumps = [
                asyncio.create_task(self._pump_stdout(self._proc.stdout)),
                asyncio.create_task(self._pump_stderr(self._proc.stderr)),
            ]
            try:
                await asyncio.gather(*pumps)
            finally:
                # A failed pump must not leave its sibling writing to the sink.
                for pump in pumps:
                    pump.cancel()
                await asyncio.gather(*pumps, return_exceptions=True)
            code = await self._proc.wait()
            rest = self._lines.flush()
            if rest is not None:
                await self._send_line(rest)
            await self._sink.send({"jobId": self.job_id, "code": code, "done": True})
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as exc:
            logger.warning("Log stream for job %s failed: %s", self.job_id, exc)
            self.cancel()
            with contextlib.suppress(Exception):
                await self._sink.send(
                    {"jobId": self.job_id, "error": True, "text": str(exc), "done": True}
                )
        finally:
            await self._close_sink()

    async def _pump_stdout(self, stream: Any) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                tail = decoder.decode(b"", final=True)
                for line in self._lines.feed(tail):
                    await self._send_line(line)
                return
            for line in self._lines.feed(decoder.decode(chunk)):
                await self._send_line(line)

    async def _pump_stderr(self, stream: Any) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                await self._sink.send(
                    {"jobId": self.job_id, "error": True, "text": text, "done": False}
                )
            if not chunk:
                return

    async def _send_line(self, text: str) -> None:
        self._line_number += 1
        await self._sink.send(
            {"jobId": self.job_id, "lineNumber": self._line_number, "text": text, "done": False}
        )

    async def _close_sink(self) -> None:
        try:
            await self._sink.close()
        except Exception as exc:
            logger.debug("Log sink for job %s already closed: %s", self.job_id, exc)


class LogStreamer:
    def __init__(
        self, executor: CliExecutor, *, kill_grace_seconds: float = _REAP_TIMEOUT_SECONDS
    ) -> None:
        self._executor = executor
        self.kill_grace_seconds = kill_grace_seconds

    def stream_logs(self, job_id: str, sink: LogSink) -> LogStream:
        """Start following ``job_id``; call ``cancel()`` on the result to stop."""
        return LogStream(
            self._executor, job_id, sink, kill_grace_seconds=self.kill_grace_seconds
        ).start()
