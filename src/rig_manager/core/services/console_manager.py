"""R console lifecycle.

Keeps at most one console with the managed name alive. A forced refresh
disposes every console carrying the name (the host may have duplicates) before
creating the new one.
"""

from __future__ import annotations

import logging

from rig_manager.core.config import SettingsFactory
from rig_manager.core.errors import BackendUnavailable, MalformedOutput
from rig_manager.core.interfaces.backend import VersionBackend
from rig_manager.core.interfaces.host import ConsoleHandle, ConsoleHost, ConsoleProvider, Notifier
from rig_manager.core.services.state import CoordinatorState

logger = logging.getLogger(__name__)


class ConsoleLifecycleManager:
    def __init__(
        self,
        settings_factory: SettingsFactory,
        *,
        backend: VersionBackend,
        host: ConsoleHost,
        notifier: Notifier,
        state: CoordinatorState,
        provider: ConsoleProvider | None = None,
    ) -> None:
        self._settings_factory = settings_factory
        self._backend = backend
        self._host = host
        self._notifier = notifier
        self._state = state
        self._provider = provider

    async def ensure(self, force_new: bool = False, *, explicit: bool = False) -> ConsoleHandle | None:
        """Make sure the managed console exists.

        `explicit` is set when the user asked for a console directly, which
        bypasses the auto-launch toggle.
        """

        settings = self._settings_factory()
        if not explicit and not settings.console_auto_launch:
            logger.debug("Console auto-launch disabled")
            return None

        if self._provider is not None and self._provider.is_available():
            logger.info("Handing console creation off to the console provider")
            await self._provider.create_console()
            return None

        name = settings.console_name
        existing = self._host.consoles(name)
        live = [c for c in existing if c.is_alive]
        if live and not force_new:
            self._state.console = live[0]
            return live[0]

        try:
            default = await self._backend.default_version()
        except (BackendUnavailable, MalformedOutput) as exc:
            self._notifier.error(f"Could not launch R console: {exc}")
            return None
        if default is None or not default.binary:
            self._notifier.warning("No default R version found. Cannot launch R console.")
            return None

        for console in existing:
            logger.debug("Disposing console '%s'", console.name)
            await console.dispose()
        self._state.console = None

        console = await self._host.create(name, default.binary)
        console.show()
        self._state.console = console
        logger.info("Launched '%s' with %s", name, default.binary)
        return console

    async def shutdown(self) -> None:
        if self._state.console is not None:
            await self._state.console.dispose()
            self._state.console = None
