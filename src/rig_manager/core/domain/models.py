"""Domain models (Pydantic v2).

Notes:
- These models describe *what* rig reports, not *how* it is queried.
- Listings are immutable snapshots: every query builds fresh instances and
  nothing patches an old listing in place.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from rig_manager.core.errors import (
    AuthFailed,
    Cancelled,
    OperationFailed,
    RigManagerError,
)


class InstalledVersion(BaseModel):
    """An R installation as reported by `rig list --json`."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(
        ...,
        min_length=1,
        description="rig's identifier for the installation (e.g. '4.3.1', '4.3-arm64').",
    )
    version: str = Field(
        ...,
        min_length=1,
        description="Semantic R version string.",
    )
    path: str = Field(
        default="",
        description="Absolute path of the installation.",
    )
    binary: str | None = Field(
        default=None,
        description="Absolute path of the R executable.",
    )
    is_default: bool = Field(
        default=False,
        alias="default",
        description="Whether rig currently designates this version as default.",
    )
    aliases: list[str] = Field(
        default_factory=list,
        description="Symbolic names pointing at this version ('release', 'oldrel', ...).",
    )

    def matches(self, name: str) -> bool:
        return name == self.name or name in self.aliases


class AvailableVersion(BaseModel):
    """An R release from rig's remote catalog (`rig available --json`)."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Installable identifier.")
    version: str | None = Field(default=None, description="Resolved R version.")
    type: str = Field(
        default="release",
        description="Release classification ('release', 'devel', 'next', ...).",
    )
    date: datetime | None = Field(default=None, description="Release date.")
    url: str | None = Field(default=None, description="Download URL of the installer.")


class ManifestRequirement(BaseModel):
    """The R version a project's manifest declares."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(..., min_length=1, description="Required R version string.")
    source: Path = Field(..., description="Manifest file the requirement was read from.")


class InstalledSet:
    """A single listing with the lookups the services need."""

    def __init__(self, versions: Iterable[InstalledVersion]) -> None:
        self._versions = list(versions)

    def __iter__(self) -> Iterator[InstalledVersion]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def default(self) -> InstalledVersion | None:
        return next((v for v in self._versions if v.is_default), None)

    def find(self, name: str) -> InstalledVersion | None:
        """Look a version up by rig name or alias."""

        return next((v for v in self._versions if v.matches(name)), None)

    def by_version(self, version: str) -> InstalledVersion | None:
        return next((v for v in self._versions if v.version == version), None)


def major_minor(version: str) -> tuple[str, str] | None:
    """Return the (major, minor) components of a dotted version string."""

    parts = version.strip().split(".")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


class Operation(str, Enum):
    """Mutating rig subcommands."""

    INSTALL = "add"
    REMOVE = "rm"
    SET_DEFAULT = "default"

    def argv(self, executable: str, version: str) -> list[str]:
        return [executable, self.value, version]

    @property
    def verb(self) -> str:
        return {
            Operation.INSTALL: "install",
            Operation.REMOVE: "uninstall",
            Operation.SET_DEFAULT: "switch to",
        }[self]

    def success_message(self, version: str) -> str:
        return {
            Operation.INSTALL: f"Successfully installed R version: {version}",
            Operation.REMOVE: f"Successfully uninstalled R version: {version}",
            Operation.SET_DEFAULT: f"Switched default R version to: {version}",
        }[self]

    @property
    def gerund(self) -> str:
        return {
            Operation.INSTALL: "Installing",
            Operation.REMOVE: "Uninstalling",
            Operation.SET_DEFAULT: "Switching to",
        }[self]


class OperationStatus(str, Enum):
    SUCCEEDED = "succeeded"
    AUTH_FAILED = "auth_failed"
    OPERATION_FAILED = "operation_failed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class OperationResult(BaseModel):
    """Terminal outcome of a privileged operation. Never retried automatically."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    version: str
    status: OperationStatus
    message: str = Field(default="", description="Short user-facing message.")
    exit_code: int | None = Field(default=None, description="Exit code of the rig/wrapper process.")

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        if self.status is OperationStatus.SUCCEEDED:
            return
        if self.status is OperationStatus.AUTH_FAILED:
            raise AuthFailed(self.message)
        if self.status is OperationStatus.CANCELLED:
            raise Cancelled(self.message)
        if self.status is OperationStatus.REJECTED:
            raise RigManagerError(self.message)
        raise OperationFailed(self.message, exit_code=self.exit_code)


class MatchKind(str, Enum):
    EXACT = "exact"
    COMPATIBLE = "compatible"

    def label(self) -> str:
        return "exact match" if self is MatchKind.EXACT else "compatible fallback"


class VersionCandidate(BaseModel):
    """An installed version chosen to satisfy a manifest requirement."""

    model_config = ConfigDict(frozen=True)

    installed: InstalledVersion
    kind: MatchKind
    required: str
