from __future__ import annotations

from rig_manager.core.domain.models import OperationResult, OperationStatus
from rig_manager.core.interfaces.host import Notifier


def report_result(notifier: Notifier, result: OperationResult) -> None:
    """Surface an operation outcome with the severity its status deserves."""

    if result.status is OperationStatus.SUCCEEDED:
        notifier.info(result.message)
    elif result.status in (OperationStatus.CANCELLED, OperationStatus.REJECTED):
        notifier.warning(result.message)
    else:
        notifier.error(result.message)
