"""Fake subprocess and sink objects shared by the executor, streamer and transport tests."""

from __future__ import annotations

import asyncio

from cloud_cli_mcp.cli.executor import ExecResult


class FakeStream:
    """Async byte stream that yields canned chunks, optionally hanging until closed."""

    def __init__(self, chunks: tuple[bytes, ...] | list[bytes] = (), *, hang: bool = False):
        self._chunks = list(chunks)
        self._hang = hang
        self._closed = asyncio.Event()

    async def read(self, n: int = -1) -> bytes:
        if self._chunks:
            return self._chunks.pop(0)
        if self._hang:
            await self._closed.wait()
        return b""

    def close(self) -> None:
        self._closed.set()


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``.

    With ``hang=True`` the process only exits once killed or terminated.
    ``ignore_terminate=True`` makes it survive ``terminate()`` like a child
    that traps SIGTERM.
    """

    def __init__(
        self,
        *,
        stdout: tuple[bytes, ...] | list[bytes] = (),
        stderr: tuple[bytes, ...] | list[bytes] = (),
        returncode: int = 0,
        hang: bool = False,
        ignore_terminate: bool = False,
    ) -> None:
        self.stdout = FakeStream(stdout, hang=hang)
        self.stderr = FakeStream(stderr, hang=hang)
        self.stdin = None
        self.returncode: int | None = None
        self.killed = False
        self.terminated = False
        self.waited = False
        self._ignore_terminate = ignore_terminate
        self._final_code = returncode
        self._exited = asyncio.Event()
        if not hang:
            self._exited.set()

    def _finish(self, code: int) -> None:
        self.returncode = code
        self.stdout.close()
        self.stderr.close()
        self._exited.set()

    def kill(self) -> None:
        self.killed = True
        self._finish(-9)

    def terminate(self) -> None:
        self.terminated = True
        if not self._ignore_terminate:
            self._finish(-15)

    def exit(self, code: int) -> None:
        self._finish(code)

    async def wait(self) -> int:
        await self._exited.wait()
        self.waited = True
        if self.returncode is None:
            self.returncode = self._final_code
        return self.returncode


class FakeSpawner:
    """Replacement for ``asyncio.create_subprocess_exec`` that records calls."""

    def __init__(self, *outcomes: FakeProcess | BaseException) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, tuple[str, ...], dict[str, object]]] = []

    async def __call__(self, program: str, *args: str, **kwargs: object) -> FakeProcess:
        self.calls.append((program, args, kwargs))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[dict[str, object]] = []
        self.closed = False

    async def send(self, message: dict[str, object]) -> None:
        self.messages.append(message)

    async def close(self) -> None:
        self.closed = True


def ok_result(stdout: str = "", json_output: object | None = None) -> ExecResult:
    return ExecResult(ok=True, exit_code=0, stdout=stdout, stderr="", json_output=json_output)


def failed_result(code: str, message: str, stderr: str = "") -> ExecResult:
    return ExecResult(
        ok=False,
        exit_code=1,
        stdout="",
        stderr=stderr,
        error_code=code,
        error_message=message,
    )
