"""Privilege models for mutating rig operations.

This module lives in the domain layer so that the config, the executor and the
doctor command share one definition of how each OS elevates.
"""

from __future__ import annotations

from enum import Enum


class PrivilegeModel(str, Enum):
    """How a mutating `rig` call obtains the privileges it needs."""

    NO_ELEVATION = "none"
    OPTIMISTIC = "optimistic"
    ALWAYS_ELEVATE = "always"

    @classmethod
    def for_platform(cls, platform: str) -> "PrivilegeModel":
        """Derive the model from a `sys.platform` value.

        Windows installs run in the caller's own token, macOS only needs sudo
        for some installs, everything else always needs it.
        """

        if platform.startswith("win"):
            return cls.NO_ELEVATION
        if platform == "darwin":
            return cls.OPTIMISTIC
        return cls.ALWAYS_ELEVATE

    @property
    def uses_wrapper(self) -> bool:
        return self is not PrivilegeModel.NO_ELEVATION

    def label(self) -> str:
        """Human readable label for doctor output and logging."""

        return {
            PrivilegeModel.NO_ELEVATION: "direct (no elevation)",
            PrivilegeModel.OPTIMISTIC: "optimistic, elevate on failure",
            PrivilegeModel.ALWAYS_ELEVATE: "always elevate",
        }[self]
