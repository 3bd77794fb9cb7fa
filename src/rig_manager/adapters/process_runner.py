"""asyncio subprocess wrapper.

- Standardizes how rig (and the elevation wrapper around it) are spawned.
- Children start in their own session on POSIX so that terminating one also
  stops whatever it spawned (sudo -> rig -> installer).
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import AsyncIterator, Sequence

from rig_manager.core.interfaces.backend import CompletedOutput

logger = logging.getLogger(__name__)

_STREAM_LIMIT = 1024 * 1024
_TERMINATE_GRACE_SECONDS = 5.0


def _signal(proc: asyncio.subprocess.Process, signum: int) -> None:
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signum)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            # Some group members run as root; signal the wrapper itself.
            pass
    try:
        proc.send_signal(signum)
    except ProcessLookupError:
        pass


async def terminate_process(proc: asyncio.subprocess.Process) -> None:
    """SIGTERM the child's process group, SIGKILL it after a grace period."""

    if proc.returncode is not None:
        return
    _signal(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(proc.wait(), _TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Process %s ignored SIGTERM, killing it", proc.pid)
        _signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        await proc.wait()


class AsyncioProcess:
    """A running child; stdout is consumed by the caller, stderr in the background."""

    def __init__(self, proc: asyncio.subprocess.Process) -> None:
        self._proc = proc
        self._stderr_chunks: list[str] = []
        self._stderr_task: asyncio.Task[None] | None = None
        if proc.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(proc.stderr))

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def stderr_text(self) -> str:
        return "".join(self._stderr_chunks)

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        async for raw in stream:
            chunk = raw.decode("utf-8", errors="replace")
            self._stderr_chunks.append(chunk)
            logger.debug("[pid %s] stderr: %s", self._proc.pid, chunk.rstrip())

    async def lines(self) -> AsyncIterator[str]:
        if self._proc.stdout is None:
            return
        async for raw in self._proc.stdout:
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def wait(self) -> int:
        code = await self._proc.wait()
        if self._stderr_task is not None:
            await self._stderr_task
        return code

    async def terminate(self) -> None:
        await terminate_process(self._proc)
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()


class AsyncProcessRunner:
    """`ProcessRunner` backed by `asyncio.create_subprocess_exec`."""

    def __init__(self, *, env: dict[str, str] | None = None) -> None:
        self._env = env

    async def _spawn(self, argv: Sequence[str], *, with_stdin: bool) -> asyncio.subprocess.Process:
        logger.debug("Spawning %s", " ".join(argv))
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if with_stdin else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._env,
            limit=_STREAM_LIMIT,
            start_new_session=os.name == "posix",
        )

    async def run(self, argv: Sequence[str], *, timeout: float | None = None) -> CompletedOutput:
        proc = await self._spawn(argv, with_stdin=False)
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
        except asyncio.TimeoutError:
            await terminate_process(proc)
            raise TimeoutError(f"{argv[0]} did not finish within {timeout} seconds") from None
        return CompletedOutput(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def start(self, argv: Sequence[str], *, stdin_data: str | None = None) -> AsyncioProcess:
        proc = await self._spawn(argv, with_stdin=stdin_data is not None)
        if stdin_data is not None and proc.stdin is not None:
            try:
                proc.stdin.write((stdin_data + "\n").encode("utf-8"))
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("Process %s closed stdin before reading it", proc.pid)
            finally:
                proc.stdin.close()
        return AsyncioProcess(proc)
