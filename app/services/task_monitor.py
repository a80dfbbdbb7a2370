"""Background reconciliation of grading tasks.

``check_all_pending_tasks`` is meant to be triggered on a fixed cadence
(see the ``/cron/status-check`` route). Each run takes a lease first so two
overlapping triggers never poll the same students.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import POLL_BATCH_SIZE, POLL_LEASE_NAME, POLL_LEASE_SECONDS
from app.core.errors import AppError, ExternalServiceError, NotFoundError
from app.models.enums import ACTIVE_GRADING_STATUSES, GradingStatus, LogLevel, SessionStatus
from app.models.grading_session import GradingSession
from app.models.student import Student
from app.schemas.task import BatchCheckResult, MonitoringStats, OldestPendingTask, TaskCheckResult
from app.services.grading_client import GradingClient
from app.services.poll_lease import acquire_lease, release_lease
from app.services.reconciler import reconcile_student
from app.services.session_logs import add_log
from app.services.session_status import check_and_update_session_status

logger = logging.getLogger(__name__)


def _pending_students(db: Session, limit: int) -> list[Student]:
    return (
        db.query(Student)
        .filter(
            Student.task_id.is_not(None),
            Student.status.in_(ACTIVE_GRADING_STATUSES),
        )
        .order_by(Student.created_at.asc(), Student.id.asc())
        .limit(limit)
        .all()
    )


def check_all_pending_tasks(
    db: Session,
    client: GradingClient,
    batch_size: int = POLL_BATCH_SIZE,
) -> BatchCheckResult:
    holder = acquire_lease(db, POLL_LEASE_NAME, POLL_LEASE_SECONDS)
    if holder is None:
        logger.info("task monitor already running, skipping this run")
        return BatchCheckResult(processed=0, updated=0, errors=0, skipped=True)

    try:
        return _run_batch(db, client, batch_size)
    finally:
        release_lease(db, POLL_LEASE_NAME, holder)


def _run_batch(db: Session, client: GradingClient, batch_size: int) -> BatchCheckResult:
    students = _pending_students(db, batch_size)
    logger.info("found %d students with pending/processing tasks", len(students))

    # snapshot before any commit/rollback expires the instances
    batch = [(s, s.id, s.name, s.task_id, s.status, s.grading_session_id) for s in students]

    results: list[TaskCheckResult] = []
    updated = 0
    errors = 0

    for student, student_id, name, task_id, status, session_id in batch:
        try:
            result = reconcile_student(db, client, student)
        except Exception as e:
            db.rollback()
            errors += 1
            message = e.message if isinstance(e, AppError) else str(e) or type(e).__name__
            logger.warning("error checking student %s task %s: %s", student_id, task_id, message)
            results.append(
                TaskCheckResult(
                    student_id=student_id,
                    task_id=task_id,
                    old_status=status,
                    new_status=status,
                    status=status.value,
                    updated=False,
                    error=message,
                )
            )
            add_log(
                db,
                session_id,
                LogLevel.ERROR,
                f"Failed to check task status for student {name}: {message}",
                context="system",
                student_id=student_id,
                metadata={"task_id": task_id},
            )
            continue

        if result.updated:
            updated += 1
        results.append(result.as_check_result())

    # once per session, not once per student
    for session_id in dict.fromkeys(row[5] for row in batch):
        try:
            check_and_update_session_status(db, session_id)
        except Exception:
            db.rollback()
            logger.exception("error updating status of session %s", session_id)

    return BatchCheckResult(
        processed=len(batch),
        updated=updated,
        errors=errors,
        results=results,
    )


def check_specific_task(db: Session, client: GradingClient, task_id: str) -> TaskCheckResult:
    student = db.query(Student).filter(Student.task_id == task_id).first()
    if student is None:
        raise NotFoundError(f"No student found with task ID: {task_id}")

    student_id = student.id
    session_id = student.grading_session_id
    old_status = student.status

    try:
        result = reconcile_student(db, client, student)
    except ExternalServiceError as e:
        logger.warning("error checking task %s: %s", task_id, e.message)
        return TaskCheckResult(
            student_id=student_id,
            task_id=task_id,
            old_status=old_status,
            new_status=old_status,
            status="ERROR",
            updated=False,
            error=e.message,
        )

    if result.updated:
        check_and_update_session_status(db, session_id)
    return result.as_check_result()


def get_active_sessions(db: Session) -> list[GradingSession]:
    return (
        db.query(GradingSession)
        .filter(GradingSession.status.in_([SessionStatus.PENDING, SessionStatus.IN_PROGRESS]))
        .all()
    )


def get_monitoring_stats(db: Session) -> MonitoringStats:
    def count_tasks(status: GradingStatus) -> int:
        return (
            db.query(func.count(Student.id))
            .filter(Student.task_id.is_not(None), Student.status == status)
            .scalar()
        ) or 0

    active_sessions = (
        db.query(func.count(GradingSession.id))
        .filter(GradingSession.status.in_([SessionStatus.PENDING, SessionStatus.IN_PROGRESS]))
        .scalar()
    ) or 0

    oldest = (
        db.query(Student)
        .filter(Student.task_id.is_not(None), Student.status == GradingStatus.PENDING)
        .order_by(Student.created_at.asc(), Student.id.asc())
        .first()
    )

    return MonitoringStats(
        total_pending_tasks=count_tasks(GradingStatus.PENDING),
        total_processing_tasks=count_tasks(GradingStatus.PROCESSING),
        total_active_sessions=active_sessions,
        oldest_pending_task=OldestPendingTask(
            task_id=oldest.task_id,
            student_name=oldest.name,
            created_at=oldest.created_at,
        )
        if oldest
        else None,
    )
