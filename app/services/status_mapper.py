from typing import Any

from app.models.enums import GradingStatus

# Grading server vocabulary -> internal status. PROCESSING is only entered
# from PENDING, see map_external_status.
EXTERNAL_STATUS_MAP = {
    "SUCCESS": GradingStatus.COMPLETED,
    "COMPLETED": GradingStatus.COMPLETED,
    "FAILURE": GradingStatus.FAILED,
    "ERROR": GradingStatus.FAILED,
    "PROGRESS": GradingStatus.PROCESSING,
    "PROCESSING_PDF": GradingStatus.PROCESSING,
}


def map_external_status(external_status: Any, current_status: GradingStatus) -> GradingStatus:
    """Translate a grading server status into our own. Never raises.

    Unknown values leave the current status alone, and a "still working"
    report never overrides anything but PENDING.
    """
    if not isinstance(external_status, str):
        return current_status

    mapped = EXTERNAL_STATUS_MAP.get(external_status)
    if mapped is None:
        return current_status

    if mapped == GradingStatus.PROCESSING and current_status != GradingStatus.PENDING:
        return current_status

    return mapped
