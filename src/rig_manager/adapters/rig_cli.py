"""rig command-line adapter.

Turns `rig list --json` / `rig available --json` into typed listings and maps
every way a read can go wrong onto `BackendUnavailable` or `MalformedOutput`.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from rig_manager.adapters.output_sanitizer import sanitize_json_paths
from rig_manager.adapters.process_runner import AsyncProcessRunner
from rig_manager.core.config import AppSettings, SettingsFactory
from rig_manager.core.domain.models import AvailableVersion, InstalledVersion
from rig_manager.core.errors import BackendUnavailable, MalformedOutput
from rig_manager.core.interfaces.backend import ProcessRunner

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def decode_listing(raw: str, model: type[_ModelT], *, sanitize_paths: bool = False) -> list[_ModelT]:
    """Decode a rig JSON listing into `model` instances.

    Raises `MalformedOutput` (with the untouched `raw` payload) when the text
    is not a JSON array of objects matching `model`.
    """

    text = sanitize_json_paths(raw) if sanitize_paths else raw
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedOutput(f"rig returned invalid JSON: {exc.msg}", raw=raw) from exc

    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedOutput("rig returned JSON that is not a list", raw=raw)

    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as exc:
        raise MalformedOutput(
            f"rig returned unexpected entries ({exc.error_count()} validation errors)",
            raw=raw,
        ) from exc


def check_single_default(versions: list[InstalledVersion], *, raw: str = "") -> None:
    defaults = [v.name for v in versions if v.is_default]
    if len(defaults) > 1:
        raise MalformedOutput(
            f"rig reports more than one default version: {', '.join(defaults)}",
            raw=raw,
        )


class RigBackend:
    """`VersionBackend` talking to the rig executable."""

    def __init__(
        self,
        settings_factory: SettingsFactory = AppSettings,
        *,
        runner: ProcessRunner | None = None,
        sanitize_paths: bool | None = None,
    ) -> None:
        self._settings_factory = settings_factory
        self._runner = runner or AsyncProcessRunner()
        self._sanitize_paths = sys.platform == "win32" if sanitize_paths is None else sanitize_paths

    async def _read(self, *args: str) -> str:
        settings = self._settings_factory()
        argv = [settings.rig_executable, *args]
        command = " ".join(argv)
        try:
            completed = await self._runner.run(argv, timeout=settings.read_timeout_seconds)
        except FileNotFoundError as exc:
            logger.warning("rig executable not found: %s", settings.rig_executable)
            raise BackendUnavailable(
                f"'{settings.rig_executable}' was not found. Is rig installed and on PATH?"
            ) from exc
        except TimeoutError as exc:
            logger.warning("`%s` timed out after %ss", command, settings.read_timeout_seconds)
            raise BackendUnavailable(f"`{command}` timed out") from exc
        except OSError as exc:
            logger.warning("Could not start `%s`: %s", command, exc)
            raise BackendUnavailable(f"Could not run `{command}`: {exc}") from exc

        if completed.returncode != 0:
            logger.warning(
                "`%s` exited with %s; stderr: %s",
                command,
                completed.returncode,
                completed.stderr.strip(),
            )
            raise BackendUnavailable(
                f"`{command}` failed: {completed.stderr.strip() or f'exit code {completed.returncode}'}",
                exit_code=completed.returncode,
                stderr=completed.stderr,
            )
        return completed.stdout

    async def list_installed(self) -> list[InstalledVersion]:
        raw = await self._read("list", "--json")
        try:
            versions = decode_listing(raw, InstalledVersion, sanitize_paths=self._sanitize_paths)
            check_single_default(versions, raw=raw)
        except MalformedOutput as exc:
            logger.error("Could not decode `rig list --json`: %s\n--- raw output ---\n%s", exc, exc.raw)
            raise
        return versions

    async def list_available(self) -> list[AvailableVersion]:
        raw = await self._read("available", "--json")
        try:
            return decode_listing(raw, AvailableVersion, sanitize_paths=self._sanitize_paths)
        except MalformedOutput as exc:
            logger.error("Could not decode `rig available --json`: %s\n--- raw output ---\n%s", exc, exc.raw)
            raise

    async def default_version(self) -> InstalledVersion | None:
        return next((v for v in await self.list_installed() if v.is_default), None)
