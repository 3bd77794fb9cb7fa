"""Core interfaces.

Protocols implemented by adapters (rig, processes) and by the host shell
(prompts, notifications, status line, consoles).
"""

from rig_manager.core.interfaces.backend import (
    CompletedOutput,
    ProcessRunner,
    RunningProcess,
    VersionBackend,
)
from rig_manager.core.interfaces.host import (
    ConsoleHandle,
    ConsoleHost,
    ConsoleProvider,
    Notifier,
    ProgressCallback,
    Prompter,
    StatusIndicator,
)

__all__ = [
    "CompletedOutput",
    "ConsoleHandle",
    "ConsoleHost",
    "ConsoleProvider",
    "Notifier",
    "ProcessRunner",
    "ProgressCallback",
    "Prompter",
    "RunningProcess",
    "StatusIndicator",
    "VersionBackend",
]
