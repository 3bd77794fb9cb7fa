"""Contracts for the version-manager backend and the processes it runs.

- `VersionBackend` is the read side of rig (listings only).
- `ProcessRunner` is how mutating calls are spawned, so the executor can be
  tested with scripted processes instead of a real rig/sudo.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Sequence, runtime_checkable

from rig_manager.core.domain.models import AvailableVersion, InstalledVersion


@runtime_checkable
class VersionBackend(Protocol):
    """Read-only view of the backend.

    Every call re-queries the tool; callers must not keep a listing across a
    mutation.
    """

    async def list_installed(self) -> list[InstalledVersion]:
        ...

    async def list_available(self) -> list[AvailableVersion]:
        ...

    async def default_version(self) -> InstalledVersion | None:
        ...


@dataclass(frozen=True)
class CompletedOutput:
    returncode: int
    stdout: str
    stderr: str


@runtime_checkable
class RunningProcess(Protocol):
    """A spawned child whose stdout is consumed line by line."""

    @property
    def returncode(self) -> int | None:
        ...

    @property
    def stderr_text(self) -> str:
        """Everything written to stderr so far."""

        ...

    def lines(self) -> AsyncIterator[str]:
        """Yield stdout lines as they arrive, until EOF."""

        ...

    async def wait(self) -> int:
        ...

    async def terminate(self) -> None:
        """Stop the child and everything it spawned."""

        ...


@runtime_checkable
class ProcessRunner(Protocol):
    async def run(self, argv: Sequence[str], *, timeout: float | None = None) -> CompletedOutput:
        """Run to completion and capture both streams.

        Raises `FileNotFoundError`/`OSError` when the executable cannot be
        spawned and `TimeoutError` when `timeout` expires.
        """

        ...

    async def start(self, argv: Sequence[str], *, stdin_data: str | None = None) -> RunningProcess:
        """Spawn a child; `stdin_data` is written then stdin is closed."""

        ...
