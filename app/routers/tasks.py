from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.core.errors import NotFoundError
from app.models.student import Student
from app.schemas.session_log import SessionLogRead
from app.schemas.task import (
    GradingTaskResult,
    TaskStatusPush,
    TaskStudentRead,
    VerifiedStudent,
    VerifyResultsRead,
)
from app.services.grading_client import GradingClient, get_grading_client
from app.services.reconciler import apply_task_result
from app.services.session_logs import get_student_logs
from app.services.session_status import check_and_update_session_status
from app.services.task_monitor import check_specific_task

router = APIRouter()


def _student_for_task(db: Session, task_id: str) -> Student:
    student = db.query(Student).filter(Student.task_id == task_id).first()
    if not student:
        raise NotFoundError("Student not found for this task")
    return student


@router.api_route("/{task_id}/check", methods=["GET", "POST"])
def check_task(
    task_id: str,
    db: Session = Depends(get_db),
    client: GradingClient = Depends(get_grading_client),
):
    result = check_specific_task(db, client, task_id)
    return {
        "message": "Task status checked",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "result": result.model_dump(),
    }


@router.get("/{task_id}/logs", response_model=list[SessionLogRead])
def task_logs(
    task_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    student = _student_for_task(db, task_id)
    return get_student_logs(db, student.id, limit)


@router.get("/{task_id}/student", response_model=TaskStudentRead)
def task_student(task_id: str, db: Session = Depends(get_db)):
    student = _student_for_task(db, task_id)
    return TaskStudentRead(
        student_id=student.id,
        session_id=student.grading_session_id,
        student_name=student.name,
        student_number=student.student_number,
    )


@router.post("/{task_id}/update-status")
def update_task_status(
    task_id: str,
    payload: TaskStatusPush,
    db: Session = Depends(get_db),
):
    """Apply a status relayed from the grading server's WebSocket channel."""
    student = _student_for_task(db, task_id)
    session_id = student.grading_session_id

    task_result = GradingTaskResult(
        status=payload.status,
        result=payload.result if payload.result is not None else payload.details,
        error=payload.error,
    )
    result = apply_task_result(db, student, task_result, source="push")
    if result.updated:
        check_and_update_session_status(db, session_id)

    return {
        "success": True,
        "task_id": task_id,
        "student_id": result.student_id,
        "old_status": result.old_status,
        "new_status": result.new_status,
        "updated": result.updated,
    }


@router.get("/{task_id}/verify-results", response_model=VerifyResultsRead)
def verify_results(task_id: str, db: Session = Depends(get_db)):
    student = _student_for_task(db, task_id)
    return VerifyResultsRead(
        task_id=task_id,
        student=VerifiedStudent(
            id=student.id,
            name=student.name,
            student_number=student.student_number,
            status=student.status,
            graded_at=student.graded_at,
            session_id=student.grading_session_id,
            has_raw_grading_output=bool(student.raw_grading_output),
            raw_grading_output=student.raw_grading_output,
        ),
    )
