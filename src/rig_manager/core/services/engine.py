"""Version coordination engine.

Wires the services around one `CoordinatorState` and one `MutationGuard` and
exposes one entry point per user command. Every entry point recovers its
errors and reports them through the host's `Notifier`; nothing here raises
into the host.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from rig_manager.core.config import SettingsFactory
from rig_manager.core.domain.models import (
    AvailableVersion,
    InstalledVersion,
    Operation,
    OperationResult,
)
from rig_manager.core.errors import BackendUnavailable, MalformedOutput
from rig_manager.core.interfaces.backend import ProcessRunner, VersionBackend
from rig_manager.core.interfaces.host import (
    ConsoleHost,
    ConsoleProvider,
    Notifier,
    ProgressCallback,
    Prompter,
    StatusIndicator,
)
from rig_manager.core.services.console_manager import ConsoleLifecycleManager
from rig_manager.core.services.privileged import PrivilegedOperationExecutor
from rig_manager.core.services.reconciler import ManifestReconciler, ReconcileOutcome
from rig_manager.core.services.reporting import report_result
from rig_manager.core.services.state import CoordinatorState, MutationGuard
from rig_manager.core.services.status import StatusPublisher
from rig_manager.core.services.switcher import VersionSwitchCoordinator

logger = logging.getLogger(__name__)


@dataclass
class HostBindings:
    """Everything the host shell provides to the engine."""

    prompter: Prompter
    notifier: Notifier
    indicator: StatusIndicator
    console_host: ConsoleHost
    console_provider: ConsoleProvider | None = None


@dataclass
class VersionCoordinationEngine:
    settings_factory: SettingsFactory
    backend: VersionBackend
    host: HostBindings
    executor: PrivilegedOperationExecutor
    switcher: VersionSwitchCoordinator
    consoles: ConsoleLifecycleManager
    reconciler: ManifestReconciler
    status: StatusPublisher
    state: CoordinatorState = field(default_factory=CoordinatorState)
    guard: MutationGuard = field(default_factory=MutationGuard)

    @classmethod
    def build(
        cls,
        settings_factory: SettingsFactory,
        *,
        backend: VersionBackend,
        runner: ProcessRunner,
        host: HostBindings,
        project_root: Path,
        guard: MutationGuard | None = None,
    ) -> "VersionCoordinationEngine":
        state = CoordinatorState()
        guard = guard if guard is not None else MutationGuard()
        status = StatusPublisher(settings_factory, backend=backend, indicator=host.indicator, state=state)
        consoles = ConsoleLifecycleManager(
            settings_factory,
            backend=backend,
            host=host.console_host,
            notifier=host.notifier,
            state=state,
            provider=host.console_provider,
        )
        executor = PrivilegedOperationExecutor(
            settings_factory,
            backend=backend,
            runner=runner,
            prompter=host.prompter,
            guard=guard,
        )
        switcher = VersionSwitchCoordinator(
            backend=backend,
            executor=executor,
            status=status,
            consoles=consoles,
            guard=guard,
        )
        reconciler = ManifestReconciler(
            settings_factory,
            project_root=project_root,
            backend=backend,
            switcher=switcher,
            executor=executor,
            status=status,
            prompter=host.prompter,
            notifier=host.notifier,
        )
        return cls(
            settings_factory=settings_factory,
            backend=backend,
            host=host,
            executor=executor,
            switcher=switcher,
            consoles=consoles,
            reconciler=reconciler,
            status=status,
            state=state,
            guard=guard,
        )

    # -- lifecycle -------------------------------------------------------

    async def activate(self) -> None:
        """Startup: publish the status, check the manifest, open the console."""

        await self.status.refresh()
        if self.settings_factory().renv_auto_check:
            await self.reconciler.reconcile(force_check=False)
        await self.consoles.ensure(force_new=False)

    async def shutdown(self) -> None:
        await self.consoles.shutdown()
        self.status.hide()

    # -- reads -----------------------------------------------------------

    async def installed_versions(self) -> list[InstalledVersion] | None:
        try:
            return await self.backend.list_installed()
        except (BackendUnavailable, MalformedOutput) as exc:
            self.host.notifier.error(f"Could not fetch installed R versions: {exc}")
            return None

    async def available_versions(self) -> list[AvailableVersion] | None:
        try:
            return await self.backend.list_available()
        except (BackendUnavailable, MalformedOutput) as exc:
            self.host.notifier.error(f"Could not fetch available R versions: {exc}")
            return None

    # -- commands --------------------------------------------------------

    async def switch(
        self,
        name: str,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        result = await self.switcher.switch_to(name, progress=progress, cancel=cancel)
        report_result(self.host.notifier, result)
        return result

    async def install(
        self,
        version: str,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        result = await self.executor.run(Operation.INSTALL, version, progress=progress, cancel=cancel)
        report_result(self.host.notifier, result)
        if result.ok:
            await self.status.refresh()
        return result

    async def remove(
        self,
        version: str,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        result = await self.executor.run(Operation.REMOVE, version, progress=progress, cancel=cancel)
        report_result(self.host.notifier, result)
        if result.ok:
            await self.status.refresh()
        return result

    async def refresh(self) -> InstalledVersion | None:
        """Re-publish the status and restart the console."""

        default = await self.status.refresh()
        if self.guard.busy:
            self.host.notifier.warning(
                f"R version status refreshed; console not restarted while '{self.guard.active}' is running."
            )
            return default
        await self.consoles.ensure(force_new=True)
        self.host.notifier.info("R version status refreshed and console restarted.")
        return default

    async def check(
        self,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReconcileOutcome:
        return await self.reconciler.reconcile(force_check=True, progress=progress, cancel=cancel)

    async def open_console(self, force_new: bool = False) -> None:
        await self.consoles.ensure(force_new=force_new, explicit=True)
