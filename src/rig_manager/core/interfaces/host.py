"""Contracts of the host shell (terminal, editor, ...).

The engine never prints, prompts or opens terminals itself; it goes through
these Protocols so the CLI and the tests plug in their own implementations.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

ProgressCallback = Callable[[str], None]


@runtime_checkable
class Prompter(Protocol):
    async def ask_secret(self, prompt: str) -> str | None:
        """Ask for a password. `None` means the user dismissed the prompt."""

        ...

    async def confirm(self, message: str, *, accept_label: str = "Yes") -> bool:
        ...


@runtime_checkable
class Notifier(Protocol):
    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


@runtime_checkable
class StatusIndicator(Protocol):
    def show(self, text: str, tooltip: str) -> None:
        ...

    def hide(self) -> None:
        ...


@runtime_checkable
class ConsoleHandle(Protocol):
    @property
    def name(self) -> str:
        ...

    @property
    def is_alive(self) -> bool:
        ...

    def show(self) -> None:
        ...

    async def dispose(self) -> None:
        ...


@runtime_checkable
class ConsoleHost(Protocol):
    """Where plain consoles live (terminals of the host)."""

    def consoles(self, name: str) -> list[ConsoleHandle]:
        """All live consoles carrying `name`, duplicates included."""

        ...

    async def create(self, name: str, executable: str) -> ConsoleHandle:
        ...


@runtime_checkable
class ConsoleProvider(Protocol):
    """A richer console integration that owns its own process management."""

    def is_available(self) -> bool:
        ...

    async def create_console(self) -> None:
        ...
