import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from app.models.enums import GradingStatus, LogLevel, SessionStatus
from app.models.grading_session import GradingSession
from app.models.session_log import SessionLog
from app.models.student import Student
from app.models.user import User
from app.schemas.grading_session import GradingSessionCreate, SessionStatusRead
from app.schemas.student import StudentCreate, StudentGradingUpdate
from app.services.grading_results import replace_feedback, replace_question_scores
from app.services.session_logs import add_log
from app.services.session_status import check_and_update_session_status, clear_statistics

logger = logging.getLogger(__name__)


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failed to %s: %s", what, e)
        raise PersistenceError(f"Failed to {what}", details=str(e)) from e


def _ensure_session_exists(db: Session, session_id: int) -> GradingSession:
    session = db.get(GradingSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


def _ensure_student_exists(db: Session, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    return student


def create_session(db: Session, user: User, payload: GradingSessionCreate) -> GradingSession:
    session = GradingSession(
        user_id=user.id,
        title=payload.title,
        subject=payload.subject,
        exam_year=payload.exam_year,
        num_students=payload.num_students,
        grading_rubric=payload.grading_rubric,
        status=SessionStatus.PENDING,
    )
    db.add(session)
    _commit(db, "create grading session")
    db.refresh(session)

    add_log(db, session.id, LogLevel.INFO, f"Session {session.title} created", context="session", user_id=user.id)
    return session


def list_sessions(db: Session, user: User, limit: int = 50) -> list[tuple[GradingSession, int]]:
    """Newest first, each with its student count."""
    student_count = (
        db.query(Student.grading_session_id, func.count(Student.id).label("n"))
        .group_by(Student.grading_session_id)
        .subquery()
    )
    rows = (
        db.query(GradingSession, func.coalesce(student_count.c.n, 0))
        .outerjoin(student_count, student_count.c.grading_session_id == GradingSession.id)
        .filter(GradingSession.user_id == user.id)
        .order_by(GradingSession.created_at.desc(), GradingSession.id.desc())
        .limit(limit)
        .all()
    )
    return [(s, n) for s, n in rows]


def get_session(db: Session, session_id: int, user_id: Optional[int] = None) -> GradingSession:
    q = (
        db.query(GradingSession)
        .options(
            selectinload(GradingSession.students).selectinload(Student.question_scores),
            selectinload(GradingSession.students).selectinload(Student.feedback),
        )
        .filter(GradingSession.id == session_id)
    )
    if user_id is not None:
        q = q.filter(GradingSession.user_id == user_id)

    session = q.first()
    if session is None:
        raise NotFoundError("Session not found")
    return session


def count_session_logs(db: Session, session_id: int) -> int:
    return (
        db.query(func.count(SessionLog.id))
        .filter(SessionLog.grading_session_id == session_id)
        .scalar()
    ) or 0


def update_session(db: Session, session_id: int, payload: GradingSessionCreate) -> GradingSession:
    session = _ensure_session_exists(db, session_id)

    session.title = payload.title
    session.subject = payload.subject
    session.exam_year = payload.exam_year
    session.num_students = payload.num_students
    session.grading_rubric = payload.grading_rubric

    _commit(db, "update grading session")
    db.refresh(session)
    return session


def delete_session(db: Session, session_id: int) -> None:
    session = _ensure_session_exists(db, session_id)
    db.delete(session)
    _commit(db, "delete grading session")
    logger.info("deleted session %s", session_id)


def cancel_session(db: Session, session_id: int, status: SessionStatus, user_id: Optional[int] = None) -> GradingSession:
    """The only manual status change: everything else is derived from students."""
    if status != SessionStatus.CANCELLED:
        raise ValidationError(
            "Invalid status",
            details=[{"loc": ["status"], "msg": "only CANCELLED can be set directly"}],
        )

    session = _ensure_session_exists(db, session_id)
    if session.status == SessionStatus.CANCELLED:
        return session
    if session.status == SessionStatus.COMPLETED:
        raise ConflictError("Completed sessions cannot be cancelled")

    session.status = SessionStatus.CANCELLED
    _commit(db, "cancel grading session")
    db.refresh(session)

    add_log(db, session_id, LogLevel.WARNING, "Session status changed to CANCELLED", context="system", user_id=user_id)
    return session


def session_status_counts(db: Session, session_id: int) -> SessionStatusRead:
    session = _ensure_session_exists(db, session_id)
    counts = dict(
        db.query(Student.status, func.count(Student.id))
        .filter(Student.grading_session_id == session_id)
        .group_by(Student.status)
        .all()
    )
    return SessionStatusRead(
        id=session.id,
        status=session.status,
        total_students=sum(counts.values()),
        completed_students=counts.get(GradingStatus.COMPLETED, 0),
        failed_students=counts.get(GradingStatus.FAILED, 0),
        processing_students=counts.get(GradingStatus.PROCESSING, 0),
        pending_students=counts.get(GradingStatus.PENDING, 0),
    )


def add_students(db: Session, session_id: int, students: list[StudentCreate]) -> list[Student]:
    session = _ensure_session_exists(db, session_id)
    if session.status == SessionStatus.CANCELLED:
        raise ConflictError("Cannot add students to a cancelled session")

    now = datetime.now(timezone.utc)
    created = [
        Student(
            grading_session_id=session_id,
            name=s.name,
            student_number=s.student_number,
            file_name=s.file_name,
            file_size=s.file_size,
            uploaded_at=now if s.file_name else None,
            status=GradingStatus.PENDING,
        )
        for s in students
    ]
    db.add_all(created)
    _commit(db, "add students")
    for student in created:
        db.refresh(student)

    for student in created:
        add_log(
            db,
            session_id,
            LogLevel.INFO,
            f"Student {student.name} added to session",
            context="student",
            student_id=student.id,
        )

    # new PENDING students reopen a completed session
    check_and_update_session_status(db, session_id)
    return created


def attach_task(db: Session, student_id: int, task_id: str) -> Student:
    """Record the grading server task id once grading was dispatched."""
    student = _ensure_student_exists(db, student_id)
    student.task_id = task_id
    _commit(db, "attach grading task")
    db.refresh(student)

    add_log(
        db,
        student.grading_session_id,
        LogLevel.INFO,
        f"Grading dispatched for student {student.name}",
        context="grading",
        student_id=student.id,
        metadata={"task_id": task_id},
    )
    return student


def update_student_grading(db: Session, student_id: int, payload: StudentGradingUpdate) -> Student:
    student = _ensure_student_exists(db, student_id)

    if payload.task_id is not None:
        student.task_id = payload.task_id
    student.status = payload.status
    if payload.status == GradingStatus.COMPLETED:
        student.graded_at = datetime.now(timezone.utc)

    if payload.scores:
        replace_question_scores(student, ((s.question_id, s.score, s.max_score) for s in payload.scores))
    if payload.feedback:
        replace_feedback(
            student,
            ((f.question_id, f.feedback, f.type, f.confidence, f.keywords) for f in payload.feedback),
        )

    _commit(db, "update student grading")
    db.refresh(student)

    add_log(
        db,
        student.grading_session_id,
        LogLevel.SUCCESS if payload.status == GradingStatus.COMPLETED else LogLevel.INFO,
        f"Student {student.name} grading status: {payload.status.value}",
        context="grading",
        student_id=student.id,
    )

    check_and_update_session_status(db, student.grading_session_id)
    db.refresh(student)
    return student


def retry_failed_students(db: Session, session_id: int) -> GradingSession:
    """Put FAILED students back to PENDING so grading can be dispatched again."""
    session = _ensure_session_exists(db, session_id)
    if session.status == SessionStatus.CANCELLED:
        raise ConflictError("Cannot retry a cancelled session")

    failed = [s for s in session.students if s.status == GradingStatus.FAILED]
    if not failed:
        return session

    for student in failed:
        student.status = GradingStatus.PENDING
        student.task_id = None
        student.graded_at = None
        student.raw_grading_output = None
        student.total_score = None
        student.max_score = None
        student.percentage = None
        student.question_scores = []
        student.feedback = []

    # leaving COMPLETED: the aggregate no longer describes a finished session
    others = [s.status for s in session.students if s not in failed]
    session.status = (
        SessionStatus.IN_PROGRESS
        if any(s in (GradingStatus.COMPLETED, GradingStatus.PROCESSING) for s in others)
        else SessionStatus.PENDING
    )
    session.completed_at = None
    clear_statistics(session)

    _commit(db, "retry failed students")
    db.refresh(session)

    add_log(
        db,
        session_id,
        LogLevel.INFO,
        f"Retrying {len(failed)} failed student(s)",
        context="system",
        metadata={"student_ids": [s.id for s in failed]},
    )
    return session
