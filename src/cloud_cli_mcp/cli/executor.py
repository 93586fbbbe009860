"""Run the cloud CLI as a child process and classify its outcome."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from cloud_cli_mcp.context.store import ContextStore
from cloud_cli_mcp.errors import ErrorCode, classify_error_text

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
TRUNCATION_MARKER = "\n...[output truncated due to size limit]"
_READ_CHUNK = 64 * 1024
_REAP_TIMEOUT_SECONDS = 5.0

SpawnFn = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ExecResult:
    ok: bool
    exit_code: int | None
    stdout: str
    stderr: str
    json_output: object | None = None
    error_code: str | None = None
    error_message: str | None = None


class _CappedBuffer:
    """Byte accumulator that stops growing once ``limit`` is reached."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._data = bytearray()
        self.truncated = False

    def append(self, chunk: bytes) -> None:
        if self.truncated:
            return
        remaining = self._limit - len(self._data)
        if len(chunk) <= remaining:
            self._data.extend(chunk)
            return
        self._data.extend(chunk[: max(remaining, 0)])
        self.truncated = True

    def text(self) -> str:
        text = self._data.decode("utf-8", errors="replace")
        if self.truncated:
            text += TRUNCATION_MARKER
        return text


def try_parse_json(text: str) -> object | None:
    trimmed = text.strip()
    if not trimmed:
        return None
    try:
        return json.loads(trimmed)
    except ValueError:
        return None


def _kill(proc: Any) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


async def _pump(stream: Any, buffer: _CappedBuffer) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        buffer.append(chunk)


class CliExecutor:
    """Spawns the CLI once per call, with a timeout and full output capture.

    Failures are reported in the returned :class:`ExecResult`; nothing is
    retried.
    """

    def __init__(
        self,
        context: ContextStore,
        *,
        binary: str = "litium-cloud",
        url_env_var: str = "LC_CLI_URL",
        default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        max_concurrency: int = 0,
        spawn: SpawnFn | None = None,
    ) -> None:
        self._context = context
        self.binary = binary
        self.url_env_var = url_env_var
        self.default_timeout_seconds = default_timeout_seconds
        self.max_output_bytes = max_output_bytes
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        cli_url = self._context.get_cli_url()
        if cli_url:
            env[self.url_env_var] = cli_url
        return env

    async def spawn(self, args: Sequence[str], *, stdin: int | None = None) -> Any:
        """Start the CLI with piped stdout/stderr. Raises ``OSError`` on failure."""
        # Only the command path is logged; later arguments may carry secret values.
        logger.debug("Spawning %s %s", self.binary, " ".join(args[:2]))
        return await self._spawn(
            self.binary,
            *args,
            stdin=asyncio.subprocess.DEVNULL if stdin is None else stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self.build_env(),
        )

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    async def execute(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        parse_json: bool = True,
        stdin_input: str | None = None,
    ) -> ExecResult:
        """Run ``<binary> <args...>`` to completion.

        ``timeout`` is in seconds and defaults to ``default_timeout_seconds``.
        The first of natural exit, timeout or spawn failure decides the result.
        """
        timeout_seconds = self.default_timeout_seconds if timeout is None else timeout
        async with self._slot():
            try:
                proc = await self.spawn(
                    args,
                    stdin=asyncio.subprocess.PIPE if stdin_input is not None else None,
                )
            except OSError as exc:
                logger.warning("Failed to spawn %s: %s", self.binary, exc)
                return ExecResult(
                    ok=False,
                    exit_code=None,
                    stdout="",
                    stderr="",
                    error_code=ErrorCode.SPAWN_ERROR.value,
                    error_message=str(exc),
                )

            stdout = _CappedBuffer(self.max_output_bytes)
            stderr = _CappedBuffer(self.max_output_bytes)

            async def _communicate() -> int:
                if stdin_input is not None and proc.stdin is not None:
                    proc.stdin.write(stdin_input.encode("utf-8"))
                    with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                        await proc.stdin.drain()
                    proc.stdin.close()
                await asyncio.gather(_pump(proc.stdout, stdout), _pump(proc.stderr, stderr))
                return await proc.wait()

            try:
                exit_code = await asyncio.wait_for(_communicate(), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                _kill(proc)
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_SECONDS)
                logger.warning(
                    "CLI command %s timed out after %ss", " ".join(args[:2]), timeout_seconds
                )
                return ExecResult(
                    ok=False,
                    exit_code=None,
                    stdout=stdout.text(),
                    stderr=stderr.text(),
                    error_code=ErrorCode.TIMEOUT.value,
                    error_message="CLI command timed out",
                )
            except asyncio.CancelledError:
                _kill(proc)
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.shield(
                        asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_SECONDS)
                    )
                raise

        out_text = stdout.text()
        err_text = stderr.text()
        if exit_code == 0:
            parsed = try_parse_json(out_text) if parse_json else None
            return ExecResult(
                ok=True,
                exit_code=exit_code,
                stdout=out_text,
                stderr=err_text,
                json_output=parsed,
            )

        # Some commands report failures on stdout only.
        code, message = classify_error_text(err_text or out_text)
        logger.info(
            "CLI command %s exited with %s (%s)", " ".join(args[:2]), exit_code, code.value
        )
        return ExecResult(
            ok=False,
            exit_code=exit_code,
            stdout=out_text,
            stderr=err_text,
            error_code=code.value,
            error_message=message,
        )
