"""rig-manager command line.

One command per engine entry point. Each invocation builds a fresh engine,
runs one command and, if a console was launched, hands the terminal over to
it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from rig_manager.adapters.console_host import CommandConsoleProvider, TerminalConsoleHost
from rig_manager.adapters.process_lock import ProcessLock
from rig_manager.adapters.process_runner import AsyncProcessRunner
from rig_manager.adapters.rig_cli import RigBackend
from rig_manager.cli.doctor import app as doctor_app
from rig_manager.cli.ui_components import (
    StatusLine,
    TerminalNotifier,
    TerminalProgress,
    TerminalPrompter,
    build_available_table,
    build_installed_table,
    pick,
    print_banner,
)
from rig_manager.core.config import AppSettings, get_user_config_dir
from rig_manager.core.domain.models import OperationResult
from rig_manager.core.errors import RigManagerError
from rig_manager.core.services.engine import HostBindings, VersionCoordinationEngine
from rig_manager.core.services.reconciler import ReconcileOutcome
from rig_manager.core.services.state import MutationGuard

app = typer.Typer(no_args_is_help=True, help="Manage your R versions with rig.")
app.add_typer(doctor_app, name="doctor")

_console = Console()

T = TypeVar("T")


@dataclass
class CliOptions:
    project_root: Path
    assume_yes: bool = False


@dataclass
class Session:
    engine: VersionCoordinationEngine
    consoles: TerminalConsoleHost
    notifier: TerminalNotifier
    progress: TerminalProgress


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )


def build_session(options: CliOptions) -> Session:
    settings = AppSettings()
    consoles = TerminalConsoleHost()
    progress = TerminalProgress(_console)
    notifier = TerminalNotifier(_console, progress=progress)
    provider = CommandConsoleProvider(settings.console_provider, consoles) if settings.console_provider else None
    runner = AsyncProcessRunner()
    host = HostBindings(
        prompter=TerminalPrompter(_console, progress=progress, assume_yes=options.assume_yes),
        notifier=notifier,
        indicator=StatusLine(_console),
        console_host=consoles,
        console_provider=provider,
    )
    engine = VersionCoordinationEngine.build(
        AppSettings,
        backend=RigBackend(AppSettings, runner=runner),
        runner=runner,
        host=host,
        project_root=options.project_root,
        guard=MutationGuard(ProcessLock(get_user_config_dir() / "operation.lock")),
    )
    return Session(engine=engine, consoles=consoles, notifier=notifier, progress=progress)


def _run(ctx: typer.Context, command: Callable[[Session, asyncio.Event], Awaitable[T]]) -> T:
    """Run one command; SIGINT cancels it, then any launched console is attached."""

    session = build_session(ctx.obj)

    async def runner() -> T:
        loop = asyncio.get_running_loop()
        cancel = asyncio.Event()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, cancel.set)
        try:
            result = await command(session, cancel)
        finally:
            session.progress.pause()
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)

        if session.consoles.foreground() is not None:
            # Ctrl-C belongs to R while it runs in the foreground.
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGINT, lambda: None)
            try:
                await session.consoles.attach_foreground()
            finally:
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(signal.SIGINT)
        await session.engine.shutdown()
        return result

    return asyncio.run(runner())


def _version_argument(value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise typer.BadParameter("must not be empty")
    return value.strip() if value is not None else None


def _exit_for(result: OperationResult | None) -> None:
    if result is None:
        raise typer.Exit(code=1)
    try:
        result.raise_for_status()
    except RigManagerError as exc:
        logging.getLogger(__name__).debug("Command failed: %r", exc)
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    ctx: typer.Context,
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Project root containing renv.lock.",
        file_okay=False,
        resolve_path=True,
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept switch/install suggestions without asking."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log diagnostics to stderr."),
) -> None:
    try:
        settings = AppSettings()
    except ValidationError as exc:
        _console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = CliOptions(project_root=project, assume_yes=yes)


@app.command("list")
def list_versions(ctx: typer.Context) -> None:
    """Show installed R versions."""

    versions = _run(ctx, lambda s, _c: s.engine.installed_versions())
    if versions is None:
        raise typer.Exit(code=1)
    if not versions:
        _console.print('No R versions found. Please install one using "rig add".')
        return
    _console.print(build_installed_table(versions))


@app.command()
def available(ctx: typer.Context) -> None:
    """Show R versions that can be installed."""

    versions = _run(ctx, lambda s, _c: s.engine.available_versions())
    if versions is None:
        raise typer.Exit(code=1)
    _console.print(build_available_table(versions))


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the default R version."""

    _run(ctx, lambda s, _c: s.engine.status.refresh())


@app.command()
def switch(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Installed R version (name or alias).", callback=_version_argument),
) -> None:
    """Switch the default R version and restart the R console."""

    async def command(session: Session, cancel: asyncio.Event) -> OperationResult | None:
        target = name
        if target is None:
            versions = await session.engine.installed_versions()
            if not versions:
                if versions is not None:
                    session.notifier.info('No R versions found. Please install one using "rig add".')
                return None
            picked = await asyncio.to_thread(
                pick,
                _console,
                build_installed_table(versions),
                versions,
                placeholder="Select an R version to switch to",
            )
            if picked is None:
                return None
            target = picked.name
        session.progress.title = f"Switching to R {target}"
        return await session.engine.switch(target, progress=session.progress, cancel=cancel)

    _exit_for(_run(ctx, command))


@app.command()
def install(
    ctx: typer.Context,
    version: str | None = typer.Argument(
        None, help="Version to install (e.g. 4.3.1, release, devel).", callback=_version_argument
    ),
) -> None:
    """Install an R version with rig."""

    async def command(session: Session, cancel: asyncio.Event) -> OperationResult | None:
        target = version
        if target is None:
            versions = await session.engine.available_versions()
            if not versions:
                if versions is not None:
                    session.notifier.info("No available R versions found to install.")
                return None
            picked = await asyncio.to_thread(
                pick,
                _console,
                build_available_table(versions),
                versions,
                placeholder="Select an R version to install",
            )
            if picked is None:
                return None
            target = picked.name
        session.progress.title = f"Installing R version {target}"
        return await session.engine.install(target, progress=session.progress, cancel=cancel)

    _exit_for(_run(ctx, command))


@app.command()
def remove(
    ctx: typer.Context,
    version: str | None = typer.Argument(None, help="Installed R version to uninstall.", callback=_version_argument),
) -> None:
    """Uninstall an R version (never the default one)."""

    async def command(session: Session, cancel: asyncio.Event) -> OperationResult | None:
        target = version
        if target is None:
            versions = await session.engine.installed_versions()
            if versions is None:
                return None
            removable = [v for v in versions if not v.is_default]
            if not removable:
                session.notifier.warning(
                    "Cannot uninstall the default R version. Please set a different version as default first."
                )
                return None
            picked = await asyncio.to_thread(
                pick,
                _console,
                build_installed_table(removable),
                removable,
                placeholder="Select an R version to uninstall",
            )
            if picked is None:
                return None
            target = picked.name
        confirmed = await session.engine.host.prompter.confirm(
            f"Are you sure you want to uninstall R version {target}? This action cannot be undone.",
            accept_label="Yes, Uninstall",
        )
        if not confirmed:
            return None
        session.progress.title = f"Uninstalling R version {target}"
        return await session.engine.remove(target, progress=session.progress, cancel=cancel)

    _exit_for(_run(ctx, command))


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Refresh the R version status and restart the R console."""

    _run(ctx, lambda s, _c: s.engine.refresh())


@app.command()
def check(ctx: typer.Context) -> None:
    """Check renv.lock and offer to switch to or install the required R version."""

    async def command(session: Session, cancel: asyncio.Event) -> ReconcileOutcome:
        session.progress.title = "renv.lock"
        return await session.engine.check(progress=session.progress, cancel=cancel)

    outcome = _run(ctx, command)
    if outcome in (ReconcileOutcome.DECODE_ERROR, ReconcileOutcome.UNAVAILABLE, ReconcileOutcome.FAILED):
        raise typer.Exit(code=1)


@app.command()
def console(
    ctx: typer.Context,
    new: bool = typer.Option(False, "--new", help="Dispose any existing console first."),
) -> None:
    """Open an R console bound to the default R version."""

    _run(ctx, lambda s, _c: s.engine.open_console(force_new=new))


@app.command()
def activate(ctx: typer.Context) -> None:
    """Startup routine: show the status, check renv.lock, launch the console."""

    print_banner(_console)
    _run(ctx, lambda s, _c: s.engine.activate())


def run() -> None:
    app()


if __name__ == "__main__":
    run()
