import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import PersistenceError
from app.models.enums import GradingStatus, LogLevel
from app.models.student import Student
from app.schemas.task import GradingTaskResult, TaskCheckResult
from app.services.grading_client import GradingClient
from app.services.grading_payload import normalize_result_payload
from app.services.grading_results import store_grading_payload
from app.services.session_logs import add_log
from app.services.status_mapper import map_external_status

logger = logging.getLogger(__name__)

LOG_LEVEL_FOR_STATUS = {
    GradingStatus.COMPLETED: LogLevel.SUCCESS,
    GradingStatus.FAILED: LogLevel.ERROR,
}


def _error_text(error: Any) -> str:
    """The server reports errors as plain text or as {"message": ...}."""
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(error)


@dataclass
class ReconcileResult:
    student_id: int
    task_id: Optional[str]
    old_status: GradingStatus
    new_status: GradingStatus
    updated: bool
    error: Optional[str] = None

    def as_check_result(self) -> TaskCheckResult:
        return TaskCheckResult(
            student_id=self.student_id,
            task_id=self.task_id or "",
            old_status=self.old_status,
            new_status=self.new_status,
            status=self.new_status.value,
            updated=self.updated,
            error=self.error,
        )


def reconcile_student(db: Session, client: GradingClient, student: Student) -> ReconcileResult:
    """Pull the task status for one student and persist it if it moved.

    External failures (ExternalServiceError and subclasses) propagate before
    anything is written.
    """
    task_result = client.fetch_task_status(student.task_id)
    return apply_task_result(db, student, task_result, source="poll")


def apply_task_result(
    db: Session,
    student: Student,
    task_result: GradingTaskResult,
    source: str = "poll",
) -> ReconcileResult:
    student_id = student.id
    session_id = student.grading_session_id
    student_name = student.name
    task_id = student.task_id
    old_status = student.status

    new_status = map_external_status(task_result.status, old_status)
    if new_status == old_status:
        return ReconcileResult(student_id, task_id, old_status, new_status, updated=False)

    payload = None
    if new_status == GradingStatus.COMPLETED:
        payload = normalize_result_payload(task_result.result)

    try:
        student.status = new_status
        if new_status == GradingStatus.COMPLETED:
            student.graded_at = datetime.now(timezone.utc)
            if payload is not None:
                store_grading_payload(student, payload)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to update student {student_id}", details=str(e)) from e

    logger.info(
        "student %s (task %s) %s -> %s via %s",
        student_id, task_id, old_status.value, new_status.value, source,
    )

    message = f"Student {student_name} status updated from {old_status.value} to {new_status.value}"
    if new_status == GradingStatus.FAILED and task_result.error:
        message += f": {_error_text(task_result.error)}"
    add_log(
        db,
        session_id,
        LOG_LEVEL_FOR_STATUS.get(new_status, LogLevel.INFO),
        message,
        context="system" if source == "poll" else "grading",
        student_id=student_id,
        metadata={"task_id": task_id, "source": source, "external_status": task_result.status},
    )

    return ReconcileResult(student_id, task_id, old_status, new_status, updated=True)
