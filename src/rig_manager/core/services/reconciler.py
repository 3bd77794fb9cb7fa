"""renv.lock reconciliation.

Compares the R version a project declares with rig's default and offers the
smallest fix: switch to an installed version (exact match first, then the
first installed version sharing major.minor), or install the exact version.

Rules:
- An absent manifest or requirement is only reported when the user asked for
  the check (`force_check`).
- A manifest that exists but can't be decoded is always reported and never
  leads to a prompt.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Iterable

from rig_manager.adapters.renv_lock import find_manifest, read_requirement
from rig_manager.core.config import SettingsFactory
from rig_manager.core.domain.models import (
    InstalledSet,
    InstalledVersion,
    MatchKind,
    Operation,
    VersionCandidate,
    major_minor,
)
from rig_manager.core.errors import (
    BackendUnavailable,
    MalformedOutput,
    ManifestDecodeError,
    NoCandidateVersion,
)
from rig_manager.core.interfaces.backend import VersionBackend
from rig_manager.core.interfaces.host import Notifier, ProgressCallback, Prompter
from rig_manager.core.services.privileged import PrivilegedOperationExecutor
from rig_manager.core.services.reporting import report_result
from rig_manager.core.services.status import StatusPublisher
from rig_manager.core.services.switcher import VersionSwitchCoordinator

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    NOT_FOUND = "not_found"
    DECODE_ERROR = "decode_error"
    NO_REQUIREMENT = "no_requirement"
    UNAVAILABLE = "unavailable"
    SATISFIED = "satisfied"
    DECLINED = "declined"
    SWITCHED = "switched"
    INSTALLED = "installed"
    FAILED = "failed"


def resolve_candidate(required: str, installed: Iterable[InstalledVersion]) -> VersionCandidate:
    """Pick the installed version that best satisfies `required`.

    Exact version string first, otherwise the first entry with the same
    major.minor. Listing order is the only tie-break.
    """

    versions = InstalledSet(installed)
    exact = versions.by_version(required)
    if exact is not None:
        return VersionCandidate(installed=exact, kind=MatchKind.EXACT, required=required)

    wanted = major_minor(required)
    if wanted is not None:
        compatible = next((v for v in versions if major_minor(v.version) == wanted), None)
        if compatible is not None:
            return VersionCandidate(installed=compatible, kind=MatchKind.COMPATIBLE, required=required)

    raise NoCandidateVersion(required)


class ManifestReconciler:
    def __init__(
        self,
        settings_factory: SettingsFactory,
        *,
        project_root: Path,
        backend: VersionBackend,
        switcher: VersionSwitchCoordinator,
        executor: PrivilegedOperationExecutor,
        status: StatusPublisher,
        prompter: Prompter,
        notifier: Notifier,
    ) -> None:
        self._settings_factory = settings_factory
        self._project_root = project_root
        self._backend = backend
        self._switcher = switcher
        self._executor = executor
        self._status = status
        self._prompter = prompter
        self._notifier = notifier

    async def reconcile(
        self,
        force_check: bool = False,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReconcileOutcome:
        settings = self._settings_factory()
        manifest = find_manifest(self._project_root, settings.manifest_filename)
        if manifest is None:
            if force_check:
                self._notifier.info(f"{settings.manifest_filename} not found in {self._project_root}.")
            return ReconcileOutcome.NOT_FOUND

        try:
            requirement = read_requirement(manifest)
        except ManifestDecodeError as exc:
            logger.error("Could not decode %s: %s", exc.path, exc)
            self._notifier.error(f"Could not read the required R version: {exc}")
            return ReconcileOutcome.DECODE_ERROR

        if requirement is None:
            if force_check:
                self._notifier.info(f"{manifest.name} does not declare an R version.")
            return ReconcileOutcome.NO_REQUIREMENT

        required = requirement.version
        try:
            installed = InstalledSet(await self._backend.list_installed())
        except (BackendUnavailable, MalformedOutput) as exc:
            logger.info("Skipping %s check: %s", manifest.name, exc)
            if force_check:
                self._notifier.error(f"Could not check installed R versions: {exc}")
            return ReconcileOutcome.UNAVAILABLE

        default = installed.default
        if default is not None and default.version == required:
            if force_check:
                self._notifier.info(f"Default R version {default.version} already matches {manifest.name}.")
            return ReconcileOutcome.SATISFIED

        current = default.version if default is not None else "not set"
        try:
            candidate = resolve_candidate(required, installed)
        except NoCandidateVersion:
            return await self._offer_install(required, current, progress=progress, cancel=cancel)
        if (
            candidate.kind is MatchKind.COMPATIBLE
            and default is not None
            and major_minor(default.version) == major_minor(required)
        ):
            if force_check:
                self._notifier.info(
                    f"Default R version {default.version} is already compatible with {manifest.name} "
                    f"(requires {required})."
                )
            return ReconcileOutcome.SATISFIED
        return await self._offer_switch(candidate, current, progress=progress, cancel=cancel)

    async def _offer_switch(
        self,
        candidate: VersionCandidate,
        current: str,
        *,
        progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> ReconcileOutcome:
        target = candidate.installed
        if candidate.kind is MatchKind.EXACT:
            message = (
                f"This project requires R {candidate.required} (renv.lock) but the default is {current}. "
                f"Switch to the installed R {target.name} ({candidate.kind.label()})?"
            )
        else:
            message = (
                f"This project requires R {candidate.required} (renv.lock), which is not installed. "
                f"R {target.version} shares the same major.minor version ({candidate.kind.label()}). "
                f"Switch to R {target.name}?"
            )
        if not await self._prompter.confirm(message, accept_label="Switch"):
            return ReconcileOutcome.DECLINED

        result = await self._switcher.switch_to(target.name, verify=False, progress=progress, cancel=cancel)
        report_result(self._notifier, result)
        return ReconcileOutcome.SWITCHED if result.ok else ReconcileOutcome.FAILED

    async def _offer_install(
        self,
        required: str,
        current: str,
        *,
        progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> ReconcileOutcome:
        message = (
            f"This project requires R {required} (renv.lock) but no compatible version is installed "
            f"(default: {current}). Install R {required}?"
        )
        if not await self._prompter.confirm(message, accept_label="Install"):
            return ReconcileOutcome.DECLINED

        result = await self._executor.run(Operation.INSTALL, required, progress=progress, cancel=cancel)
        report_result(self._notifier, result)
        if not result.ok:
            return ReconcileOutcome.FAILED
        await self._status.refresh()
        return ReconcileOutcome.INSTALLED
