"""State owned by the coordination engine.

The engine creates one `CoordinatorState` and one `MutationGuard` at startup
and hands them to the services that need them; nothing lives in module
globals.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from rig_manager.adapters.process_lock import ProcessLock
from rig_manager.core.domain.models import InstalledVersion
from rig_manager.core.errors import OperationInProgress
from rig_manager.core.interfaces.host import ConsoleHandle

logger = logging.getLogger(__name__)


@dataclass
class CoordinatorState:
    """Last default version seen by the engine and the console it manages."""

    current_default: InstalledVersion | None = None
    console: ConsoleHandle | None = None


class MutationGuard:
    """Single-flight gate for install/remove/switch.

    A second request while one is in flight is rejected, never queued, so two
    mutations can't interleave on rig's default-version state. With a
    `ProcessLock` the gate also covers other rig-manager processes.
    """

    def __init__(self, process_lock: ProcessLock | None = None) -> None:
        self._lock = asyncio.Lock()
        self._process_lock = process_lock
        self._active: str | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def active(self) -> str | None:
        return self._active

    @asynccontextmanager
    async def hold(self, label: str) -> AsyncIterator[None]:
        if self._lock.locked():
            logger.info("Rejecting '%s': '%s' is in flight", label, self._active)
            raise OperationInProgress(self._active or "unknown operation")
        async with self._lock:
            if self._process_lock is not None and not self._process_lock.acquire(label):
                holder = self._process_lock.holder()
                logger.info("Rejecting '%s': '%s' is running in another process", label, holder)
                raise OperationInProgress(holder or "an operation in another rig-manager process")
            self._active = label
            try:
                yield
            finally:
                self._active = None
                if self._process_lock is not None:
                    self._process_lock.release()
