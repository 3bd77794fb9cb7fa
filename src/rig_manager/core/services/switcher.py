"""Version switch orchestration.

backend pre-check -> `rig default` through the executor -> status + console.
Nothing downstream is touched unless rig reports success.
"""

from __future__ import annotations

import asyncio
import logging

from rig_manager.core.domain.models import (
    InstalledSet,
    Operation,
    OperationResult,
    OperationStatus,
)
from rig_manager.core.errors import BackendUnavailable, MalformedOutput, OperationInProgress
from rig_manager.core.interfaces.backend import VersionBackend
from rig_manager.core.interfaces.host import ProgressCallback
from rig_manager.core.services.console_manager import ConsoleLifecycleManager
from rig_manager.core.services.privileged import PrivilegedOperationExecutor
from rig_manager.core.services.state import MutationGuard
from rig_manager.core.services.status import StatusPublisher

logger = logging.getLogger(__name__)


class VersionSwitchCoordinator:
    def __init__(
        self,
        *,
        backend: VersionBackend,
        executor: PrivilegedOperationExecutor,
        status: StatusPublisher,
        consoles: ConsoleLifecycleManager,
        guard: MutationGuard,
    ) -> None:
        self._backend = backend
        self._executor = executor
        self._status = status
        self._consoles = consoles
        self._guard = guard

    def _result(self, name: str, status: OperationStatus, message: str) -> OperationResult:
        return OperationResult(
            operation=Operation.SET_DEFAULT,
            version=name,
            status=status,
            message=message,
        )

    async def switch_to(
        self,
        name: str,
        *,
        verify: bool = True,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        try:
            async with self._guard.hold(f"switch to R {name}"):
                return await self._switch(name, verify=verify, progress=progress, cancel=cancel)
        except OperationInProgress as exc:
            return self._result(name, OperationStatus.REJECTED, str(exc))

    async def _switch(
        self,
        name: str,
        *,
        verify: bool,
        progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> OperationResult:
        if verify:
            try:
                installed = InstalledSet(await self._backend.list_installed())
            except (BackendUnavailable, MalformedOutput) as exc:
                return self._result(name, OperationStatus.OPERATION_FAILED, f"Failed to switch to {name}: {exc}")
            if installed.find(name) is None:
                return self._result(
                    name,
                    OperationStatus.OPERATION_FAILED,
                    f"R version {name} is not installed.",
                )

        result = await self._executor.execute(Operation.SET_DEFAULT, name, progress=progress, cancel=cancel)
        if not result.ok:
            logger.info("Switch to %s aborted: %s", name, result.status.value)
            return result

        # Listings are stale after a mutation: read again before propagating.
        await self._status.refresh()
        await self._consoles.ensure(force_new=True)
        return result
