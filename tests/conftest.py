"""
Shared fixtures: in-memory fakes for rig, child processes and the host shell.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Sequence

import pytest

from rig_manager.core.config import AppSettings
from rig_manager.core.domain.models import AvailableVersion, InstalledVersion
from rig_manager.core.domain.platform import PrivilegeModel
from rig_manager.core.errors import BackendUnavailable
from rig_manager.core.interfaces.backend import CompletedOutput
from rig_manager.core.services.engine import HostBindings, VersionCoordinationEngine


def make_settings(**overrides: Any) -> AppSettings:
    values: dict[str, Any] = {
        "privilege_model": PrivilegeModel.NO_ELEVATION,
        "console_provider": None,
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


def installed(version: str, *, default: bool = False, name: str | None = None, aliases: Sequence[str] = ()) -> InstalledVersion:
    name = name or version
    return InstalledVersion(
        name=name,
        version=version,
        path=f"/opt/R/{name}",
        binary=f"/opt/R/{name}/bin/R",
        is_default=default,
        aliases=list(aliases),
    )


# ── rig ────────────────────────────────────────────────────────────────────

class FakeBackend:
    """Listing kept in memory; mutated by `FakeRunner` when rig 'succeeds'."""

    def __init__(self, versions: Sequence[InstalledVersion] = (), available: Sequence[AvailableVersion] = ()) -> None:
        self.versions = list(versions)
        self.available = list(available)
        self.error: Exception | None = None
        self.list_calls = 0

    async def list_installed(self) -> list[InstalledVersion]:
        self.list_calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.versions)

    async def list_available(self) -> list[AvailableVersion]:
        if self.error is not None:
            raise self.error
        return list(self.available)

    async def default_version(self) -> InstalledVersion | None:
        return next((v for v in await self.list_installed() if v.is_default), None)

    def set_default(self, name: str) -> None:
        self.versions = [
            v.model_copy(update={"is_default": v.matches(name)}) for v in self.versions
        ]

    def add(self, version: str) -> None:
        self.versions.append(installed(version))

    def remove(self, name: str) -> None:
        self.versions = [v for v in self.versions if not v.matches(name)]

    def go_offline(self) -> None:
        self.error = BackendUnavailable("'rig' was not found. Is rig installed and on PATH?")


# ── processes ──────────────────────────────────────────────────────────────

class FakeProcess:
    def __init__(
        self,
        lines: Sequence[str] = (),
        returncode: int = 0,
        stderr: str = "",
        *,
        hang: bool = False,
    ) -> None:
        self._lines = list(lines)
        self._final_code = returncode
        self._stderr = stderr
        self._hang = hang
        self._released = asyncio.Event()
        self.returncode: int | None = None
        self.terminated = False
        self.started = asyncio.Event()

    @property
    def stderr_text(self) -> str:
        return self._stderr

    async def lines(self):
        self.started.set()
        for line in self._lines:
            await asyncio.sleep(0)
            yield line
        if self._hang:
            await self._released.wait()

    async def wait(self) -> int:
        if self._hang:
            await self._released.wait()
        if self.returncode is None:
            self.returncode = self._final_code
        return self.returncode

    async def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15
        self._released.set()

    def finish(self) -> None:
        self._released.set()


class FakeRunner:
    """Hands out scripted processes and applies rig's side effects on success."""

    def __init__(self, backend: FakeBackend | None = None) -> None:
        self.backend = backend
        self.processes: list[FakeProcess] = []
        self.started: list[tuple[list[str], str | None]] = []
        self.outputs: list[CompletedOutput | BaseException] = []
        self.run_calls: list[tuple[list[str], float | None]] = []
        self.spawn_error: OSError | None = None

    def script(self, *processes: FakeProcess) -> None:
        self.processes.extend(processes)

    async def run(self, argv: Sequence[str], *, timeout: float | None = None) -> CompletedOutput:
        self.run_calls.append((list(argv), timeout))
        output = self.outputs.pop(0)
        if isinstance(output, BaseException):
            raise output
        return output

    async def start(self, argv: Sequence[str], *, stdin_data: str | None = None) -> FakeProcess:
        if self.spawn_error is not None:
            raise self.spawn_error
        self.started.append((list(argv), stdin_data))
        process = self.processes.pop(0) if self.processes else FakeProcess()
        if self.backend is not None and process._final_code == 0 and not process._hang:
            self._apply(argv)
        return process

    def _apply(self, argv: Sequence[str]) -> None:
        index = argv.index("rig")
        subcommand, version = argv[index + 1], argv[index + 2]
        if subcommand == "default":
            self.backend.set_default(version)
        elif subcommand == "add":
            self.backend.add(version)
        elif subcommand == "rm":
            self.backend.remove(version)


# ── host ───────────────────────────────────────────────────────────────────

class FakePrompter:
    def __init__(self, secrets: Sequence[str | None] = (), answers: Sequence[bool] = ()) -> None:
        self.secrets = list(secrets)
        self.answers = list(answers)
        self.secret_prompts: list[str] = []
        self.confirm_prompts: list[str] = []

    async def ask_secret(self, prompt: str) -> str | None:
        self.secret_prompts.append(prompt)
        return self.secrets.pop(0) if self.secrets else None

    async def confirm(self, message: str, *, accept_label: str = "Yes") -> bool:
        self.confirm_prompts.append(message)
        return self.answers.pop(0) if self.answers else False


class FakeNotifier:
    def __init__(self) -> None:
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class FakeIndicator:
    def __init__(self) -> None:
        self.visible = False
        self.text = ""
        self.tooltip = ""
        self.shows = 0

    def show(self, text: str, tooltip: str) -> None:
        self.visible = True
        self.text = text
        self.tooltip = tooltip
        self.shows += 1

    def hide(self) -> None:
        self.visible = False


class FakeConsole:
    def __init__(self, name: str, executable: str) -> None:
        self.name = name
        self.executable = executable
        self.alive = True
        self.shown = False

    @property
    def is_alive(self) -> bool:
        return self.alive

    def show(self) -> None:
        self.shown = True

    async def dispose(self) -> None:
        self.alive = False


class FakeConsoleHost:
    def __init__(self) -> None:
        self.all: list[FakeConsole] = []
        self.created = 0

    def consoles(self, name: str) -> list[FakeConsole]:
        return [c for c in self.all if c.name == name]

    async def create(self, name: str, executable: str) -> FakeConsole:
        self.created += 1
        console = FakeConsole(name, executable)
        self.all.append(console)
        return console

    def live(self, name: str = "R Console") -> list[FakeConsole]:
        return [c for c in self.consoles(name) if c.alive]


class FakeProvider:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.created = 0

    def is_available(self) -> bool:
        return self.available

    async def create_console(self) -> None:
        self.created += 1


# ── fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend([installed("4.2.0", default=True), installed("4.3.1", aliases=["release"])])


@pytest.fixture
def runner(backend: FakeBackend) -> FakeRunner:
    return FakeRunner(backend)


@pytest.fixture
def prompter() -> FakePrompter:
    return FakePrompter()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def indicator() -> FakeIndicator:
    return FakeIndicator()


@pytest.fixture
def console_host() -> FakeConsoleHost:
    return FakeConsoleHost()


@pytest.fixture
def settings() -> dict[str, Any]:
    """Mutable overrides; the factory re-reads them on every call."""

    return {}


@pytest.fixture
def settings_factory(settings: dict[str, Any]):
    return lambda: make_settings(**settings)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def engine(settings_factory, backend, runner, prompter, notifier, indicator, console_host, project) -> VersionCoordinationEngine:
    host = HostBindings(
        prompter=prompter,
        notifier=notifier,
        indicator=indicator,
        console_host=console_host,
    )
    return VersionCoordinationEngine.build(
        settings_factory,
        backend=backend,
        runner=runner,
        host=host,
        project_root=project,
    )
