"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from rig_manager.adapters.renv_lock import find_manifest, read_requirement
from rig_manager.adapters.rig_cli import RigBackend
from rig_manager.core.config import AppSettings, write_user_env_vars
from rig_manager.core.domain.models import InstalledSet
from rig_manager.core.errors import BackendUnavailable, MalformedOutput, ManifestDecodeError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_rig(settings: AppSettings) -> tuple[bool, str]:
    try:
        installed = InstalledSet(await RigBackend(lambda: settings).list_installed())
    except (BackendUnavailable, MalformedOutput) as exc:
        return False, str(exc)
    default = installed.default
    label = f"{default.name} ({default.version})" if default else "not set"
    return True, f"{len(installed)} installed, default: {label}"


def _check_manifest(project_root: Path, settings: AppSettings) -> tuple[str, str]:
    manifest = find_manifest(project_root, settings.manifest_filename)
    if manifest is None:
        return "OPTIONAL", f"No {settings.manifest_filename} in {project_root}"
    try:
        requirement = read_requirement(manifest)
    except ManifestDecodeError as exc:
        return "FAIL", str(exc)
    if requirement is None:
        return "OK", "No R version declared"
    return "OK", f"Requires R {requirement.version}"


@app.command()
def run(
    project: Path = typer.Option(Path("."), "--project", "-p", file_okay=False, resolve_path=True),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="rig-manager Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    rig_path = shutil.which(settings.rig_executable)
    table.add_row("rig executable", "OK" if rig_path else "FAIL", rig_path or f"'{settings.rig_executable}' not on PATH")

    ok_rig, detail_rig = asyncio.run(_check_rig(settings))
    table.add_row("rig list --json", "OK" if ok_rig else "FAIL", detail_rig)

    model = settings.resolved_privilege_model()
    table.add_row("Privilege model", "OK", model.label())
    if model.uses_wrapper:
        wrapper = shutil.which(settings.elevation_command)
        table.add_row(
            "Elevation wrapper",
            "OK" if wrapper else "FAIL",
            wrapper or f"'{settings.elevation_command}' not on PATH",
        )

    manifest_status, manifest_detail = _check_manifest(project, settings)
    table.add_row(settings.manifest_filename, manifest_status, manifest_detail)

    if settings.console_provider:
        provider = shutil.which(settings.console_provider)
        table.add_row(
            "Console provider",
            "OK" if provider else "MISSING",
            provider or f"'{settings.console_provider}' not found, plain R console will be used",
        )

    table.add_row("Status line", "ON" if settings.status_bar_visible else "OFF", "RIG_MANAGER_STATUS_BAR_VISIBLE")
    table.add_row("Console auto-launch", "ON" if settings.console_auto_launch else "OFF", "RIG_MANAGER_CONSOLE_AUTO_LAUNCH")
    table.add_row("renv auto-check", "ON" if settings.renv_auto_check else "OFF", "RIG_MANAGER_RENV_AUTO_CHECK")

    _console.print(table)

    if not ok_rig:
        _console.print("\n[yellow]Note:[/yellow] Install rig from https://github.com/r-lib/rig and make sure it is on PATH.")


@app.command(name="config")
def configure() -> None:
    """Interactive setup of the three toggles (stored in the user config .env)."""

    settings = AppSettings()
    values = {
        "RIG_MANAGER_STATUS_BAR_VISIBLE": typer.confirm(
            "Show the R version status line?", default=settings.status_bar_visible
        ),
        "RIG_MANAGER_CONSOLE_AUTO_LAUNCH": typer.confirm(
            "Launch an R console automatically?", default=settings.console_auto_launch
        ),
        "RIG_MANAGER_RENV_AUTO_CHECK": typer.confirm(
            "Check renv.lock automatically?", default=settings.renv_auto_check
        ),
    }
    provider = typer.prompt(
        "Richer R console command (empty for none)",
        default=settings.console_provider or "",
        show_default=True,
    ).strip()

    env_path = write_user_env_vars(
        {
            **{key: "true" if value else "false" for key, value in values.items()},
            "RIG_MANAGER_CONSOLE_PROVIDER": provider,
        }
    )

    _console.print(f"[green]Saved configuration to:[/green] {env_path}")
