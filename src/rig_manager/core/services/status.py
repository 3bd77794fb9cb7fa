"""Status line publishing.

Purely observational: reads rig, renders, never mutates backend state.
"""

from __future__ import annotations

import logging

from rig_manager.core.config import SettingsFactory
from rig_manager.core.domain.models import InstalledVersion
from rig_manager.core.errors import BackendUnavailable, MalformedOutput
from rig_manager.core.interfaces.backend import VersionBackend
from rig_manager.core.interfaces.host import StatusIndicator
from rig_manager.core.services.state import CoordinatorState

logger = logging.getLogger(__name__)

NOT_SET_TEXT = "R: Not set"
NOT_SET_TOOLTIP = "No default R version selected. Click to choose one."


def render_status(version: InstalledVersion | None) -> tuple[str, str]:
    """Return the (text, tooltip) pair shown for `version`."""

    if version is None:
        return NOT_SET_TEXT, NOT_SET_TOOLTIP
    return (
        f"R: {version.version}",
        f"Default R Version: {version.name} ({version.version})",
    )


class StatusPublisher:
    def __init__(
        self,
        settings_factory: SettingsFactory,
        *,
        backend: VersionBackend,
        indicator: StatusIndicator,
        state: CoordinatorState,
    ) -> None:
        self._settings_factory = settings_factory
        self._backend = backend
        self._indicator = indicator
        self._state = state

    def publish(self, version: InstalledVersion | None) -> None:
        self._state.current_default = version
        if not self._settings_factory().status_bar_visible:
            self._indicator.hide()
            return
        text, tooltip = render_status(version)
        self._indicator.show(text, tooltip)

    def hide(self) -> None:
        self._indicator.hide()

    async def refresh(self) -> InstalledVersion | None:
        """Re-read rig and publish its default; hide when rig can't be read."""

        try:
            default = await self._backend.default_version()
        except (BackendUnavailable, MalformedOutput) as exc:
            logger.info("Hiding status: %s", exc)
            self._state.current_default = None
            self._indicator.hide()
            return None
        self.publish(default)
        return default
