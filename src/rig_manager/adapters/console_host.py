"""Terminal console host.

In a terminal there is exactly one place an interactive R can live: the
foreground of the current terminal. Consoles are therefore created *pending*
and only spawned when the CLI attaches to the one that was shown last, after
every other message has been printed. Disposing a pending console simply
drops it.
"""

from __future__ import annotations

import asyncio
import logging
import shutil

from rig_manager.core.interfaces.host import ConsoleHandle

logger = logging.getLogger(__name__)


class TerminalConsole:
    def __init__(self, name: str, argv: list[str]) -> None:
        self._name = name
        self.argv = argv
        self.shown = False
        self._disposed = False
        self._process: asyncio.subprocess.Process | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_alive(self) -> bool:
        if self._disposed:
            return False
        return self._process is None or self._process.returncode is None

    def show(self) -> None:
        self.shown = True

    async def dispose(self) -> None:
        self._disposed = True
        if self._process is not None and self._process.returncode is None:
            self._process.terminate()
            await self._process.wait()

    async def attach(self) -> int:
        """Run the console in the foreground (inheriting stdio) until it exits."""

        if self._process is None:
            logger.debug("Starting console '%s': %s", self._name, " ".join(self.argv))
            self._process = await asyncio.create_subprocess_exec(*self.argv)
        return await self._process.wait()


class TerminalConsoleHost:
    """`ConsoleHost` for the CLI: keeps the consoles created during one run."""

    def __init__(self) -> None:
        self._consoles: list[TerminalConsole] = []

    def consoles(self, name: str) -> list[ConsoleHandle]:
        return [c for c in self._consoles if c.name == name]

    async def create(self, name: str, executable: str) -> TerminalConsole:
        return self.open(name, [executable])

    def open(self, name: str, argv: list[str]) -> TerminalConsole:
        console = TerminalConsole(name, argv)
        self._consoles.append(console)
        return console

    def foreground(self) -> TerminalConsole | None:
        """The most recently shown console that is still alive."""

        for console in reversed(self._consoles):
            if console.shown and console.is_alive:
                return console
        return None

    async def attach_foreground(self) -> int | None:
        console = self.foreground()
        if console is None:
            return None
        return await console.attach()


class CommandConsoleProvider:
    """Delegates console creation to a richer R console such as radian."""

    def __init__(self, command: str, host: TerminalConsoleHost) -> None:
        self._command = command
        self._host = host

    def is_available(self) -> bool:
        return shutil.which(self._command) is not None

    async def create_console(self) -> None:
        executable = shutil.which(self._command) or self._command
        for console in self._host.consoles(self._command):
            await console.dispose()
        self._host.open(self._command, [executable]).show()
