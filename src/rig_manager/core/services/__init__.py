"""Services of the version coordination engine.

The CLI (or any other host) only talks to `VersionCoordinationEngine`; the
individual services are importable for tests and alternative hosts.
"""

from rig_manager.core.services.engine import HostBindings, VersionCoordinationEngine
from rig_manager.core.services.reconciler import ReconcileOutcome

__all__ = ["HostBindings", "ReconcileOutcome", "VersionCoordinationEngine"]
