"""Error taxonomy of the coordination engine.

Every error is recovered at the operation boundary and turned into a short
user-facing message; the attributes carry the diagnostic detail that goes to
the log instead.
"""

from __future__ import annotations


class RigManagerError(Exception):
    """Base class for every error the engine surfaces."""


class BackendUnavailable(RigManagerError):
    """rig is missing, timed out, or exited non-zero on a read."""

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class MalformedOutput(RigManagerError):
    """rig's output could not be decoded as the expected JSON document."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class AuthFailed(RigManagerError):
    """The elevation wrapper rejected the credential."""


class OperationFailed(RigManagerError):
    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class Cancelled(RigManagerError):
    """The user dismissed a prompt or cancelled an in-flight operation."""


class OperationInProgress(RigManagerError):
    """Another install/remove/switch is already running."""

    def __init__(self, active: str) -> None:
        super().__init__(f"Another operation is already in progress: {active}")
        self.active = active


class ManifestDecodeError(RigManagerError):
    """The project manifest exists but is not valid."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class NoCandidateVersion(RigManagerError):
    """No installed version matches the manifest requirement."""

    def __init__(self, required: str) -> None:
        super().__init__(f"No installed R version matches {required}")
        self.required = required
