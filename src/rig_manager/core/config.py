"""Core configuration.

- Centralizes environment variables (pydantic-settings) away from the CLI.
- Every service receives a settings *factory* and calls it at the start of each
  operation, so toggles changed in `.env` take effect on the next command.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rig_manager.core.domain.platform import PrivilegeModel


APP_DIR_NAME = "rig-manager"


def get_user_config_dir() -> Path:
    """Per-user configuration directory: %APPDATA%, ~/Library or $XDG_CONFIG_HOME."""

    home = Path.home()
    if sys.platform.startswith("win"):
        root = Path(os.environ.get("APPDATA") or home)
    elif sys.platform == "darwin":
        root = home / "Library" / "Application Support"
    else:
        root = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
    return root / APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _env_key(line: str) -> str | None:
    """Variable name assigned on `line`, or None for comments and blanks."""

    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    key = stripped.split("=", 1)[0].strip()
    if key.startswith("export "):
        key = key[len("export "):].strip()
    return key or None


def write_user_env_vars(values: dict[str, str | None], env_path: Path | None = None) -> Path:
    """Set `values` in the user's .env.

    Keys already present are rewritten in place; comments and unrelated
    variables are preserved; new keys are appended. `None` values are skipped.
    """

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    updates = {key: value for key, value in values.items() if value is not None}
    if env_path.exists():
        lines = env_path.read_text(encoding="utf-8").splitlines()
    else:
        lines = [f"# {APP_DIR_NAME} user config"]

    written: set[str] = set()
    for index, line in enumerate(lines):
        key = _env_key(line)
        if key in updates:
            lines[index] = f"{key}={updates[key]}"
            written.add(key)
    lines.extend(f"{key}={value}" for key, value in updates.items() if key not in written)

    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Application configuration.

    The three user toggles (`status_bar_visible`, `console_auto_launch`,
    `renv_auto_check`) mirror the editor settings of the same name; the rest
    tune how `rig` and the elevation wrapper are invoked.
    """

    model_config = SettingsConfigDict(
        env_prefix="RIG_MANAGER_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    status_bar_visible: bool = Field(
        default=True,
        description="Show the current R version in the status line.",
    )
    console_auto_launch: bool = Field(
        default=True,
        description="Launch an R console on activation and after every switch.",
    )
    renv_auto_check: bool = Field(
        default=True,
        description="Check renv.lock on activation and suggest the required R version.",
    )

    rig_executable: str = Field(
        default="rig",
        min_length=1,
        description="Name or path of the rig executable.",
    )
    elevation_command: str = Field(
        default="sudo",
        min_length=1,
        description="Privileged-execution wrapper fed the password on stdin.",
    )
    privilege_model: PrivilegeModel | None = Field(
        default=None,
        description="Override the privilege model detected from the platform.",
    )

    console_name: str = Field(
        default="R Console",
        min_length=1,
        description="Logical name of the managed R console.",
    )
    console_provider: str | None = Field(
        default=None,
        description="Command of a richer R console (e.g. 'radian') to delegate to.",
    )

    manifest_filename: str = Field(
        default="renv.lock",
        min_length=1,
        description="Project manifest declaring the required R version.",
    )

    read_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for read-only rig calls (list/available).",
    )
    operation_timeout_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Timeout for install/remove/switch operations.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level for diagnostics (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    def resolved_privilege_model(self) -> PrivilegeModel:
        return self.privilege_model or PrivilegeModel.for_platform(sys.platform)


SettingsFactory = Callable[[], AppSettings]
