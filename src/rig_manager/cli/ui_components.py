"""CLI UI components (Rich).

Terminal implementations of the host Protocols (prompter, notifier, status
line, progress) plus the tables the commands print.
"""

from __future__ import annotations

import asyncio
from typing import Sequence, TypeVar

import typer
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.status import Status
from rich.table import Table
from rich.text import Text

from rig_manager.core.domain.models import AvailableVersion, InstalledVersion

T = TypeVar("T")


def print_banner(console: Console) -> None:
    title = Text("rig-manager", style="bold cyan")
    subtitle = Text("R versions • renv • console", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_installed_table(versions: Sequence[InstalledVersion]) -> Table:
    table = Table(title="Installed R versions")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Version", style="white")
    table.add_column("Default", style="green")
    table.add_column("Aliases", style="magenta")
    table.add_column("Path", style="dim")
    for index, v in enumerate(versions, start=1):
        table.add_row(
            str(index),
            v.name,
            v.version,
            "(default)" if v.is_default else "",
            ", ".join(v.aliases),
            v.path,
        )
    return table


def build_available_table(versions: Sequence[AvailableVersion]) -> Table:
    table = Table(title="Available R versions")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Released on", style="white")
    for index, v in enumerate(versions, start=1):
        released = v.date.date().isoformat() if v.date else ""
        table.add_row(str(index), v.name, f"({v.type})", released)
    return table


def pick(console: Console, table: Table, items: Sequence[T], *, placeholder: str) -> T | None:
    """Numbered quick-pick. Returns `None` when the user aborts or enters 0."""

    console.print(table)
    try:
        choice = typer.prompt(f"{placeholder} (0 to cancel)", type=int, default=0, show_default=False)
    except typer.Abort:
        return None
    if choice < 1 or choice > len(items):
        return None
    return items[choice - 1]


class TerminalProgress:
    """Spinner showing the latest progress line of a running operation."""

    def __init__(self, console: Console, title: str = "") -> None:
        self._console = console
        self.title = title
        self._status: Status | None = None
        self.last_message = ""

    def update(self, message: str) -> None:
        self.last_message = message
        text = f"{self.title}: {message}" if self.title else message
        if self._status is None:
            self._status = self._console.status(text)
            self._status.start()
        else:
            self._status.update(text)

    def pause(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    __call__ = update


class TerminalPrompter:
    def __init__(self, console: Console, *, progress: TerminalProgress | None = None, assume_yes: bool = False) -> None:
        self._console = console
        self._progress = progress
        self._assume_yes = assume_yes

    async def ask_secret(self, prompt: str) -> str | None:
        if self._progress is not None:
            self._progress.pause()

        def ask() -> str | None:
            try:
                return typer.prompt(prompt, hide_input=True, default="", show_default=False)
            except typer.Abort:
                return None

        return await asyncio.to_thread(ask)

    async def confirm(self, message: str, *, accept_label: str = "Yes") -> bool:
        if self._assume_yes:
            self._console.print(f"{message} [dim]({accept_label}: --yes)[/dim]")
            return True
        if self._progress is not None:
            self._progress.pause()

        def ask() -> bool:
            try:
                return typer.confirm(f"{message} [{accept_label}]", default=False)
            except typer.Abort:
                return False

        return await asyncio.to_thread(ask)


class TerminalNotifier:
    def __init__(self, console: Console, *, progress: TerminalProgress | None = None) -> None:
        self._console = console
        self._progress = progress
        self.errors = 0

    def _print(self, message: str, style: str) -> None:
        if self._progress is not None:
            self._progress.pause()
        self._console.print(Text(message, style=style))

    def info(self, message: str) -> None:
        self._print(message, "green")

    def warning(self, message: str) -> None:
        self._print(message, "yellow")

    def error(self, message: str) -> None:
        self.errors += 1
        self._print(message, "bold red")


class StatusLine:
    """Status indicator rendered as a one-line panel."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self.visible = False
        self.text = ""
        self.tooltip = ""

    def show(self, text: str, tooltip: str) -> None:
        self.visible = True
        self.text = text
        self.tooltip = tooltip
        self._console.print(Text.assemble(("● ", "cyan"), (text, "bold"), ("  " + tooltip, "dim")))

    def hide(self) -> None:
        self.visible = False
