import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.config import DEFAULT_LOG_LIMIT, MAX_LOG_LIMIT
from app.core.errors import NotFoundError
from app.models.enums import LogLevel
from app.models.grading_session import GradingSession
from app.models.session_log import SessionLog
from app.models.student import Student

logger = logging.getLogger(__name__)


def add_log(
    db: Session,
    session_id: int,
    level: LogLevel,
    message: str,
    context: Optional[str] = None,
    user_id: Optional[int] = None,
    student_id: Optional[int] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[SessionLog]:
    """Best-effort audit entry.

    Commits on its own, so callers must have committed their own work first.
    A failure here is logged and dropped; it never reaches the caller.
    """
    entry = SessionLog(
        grading_session_id=session_id,
        level=level,
        message=message,
        context=context,
        user_id=user_id,
        student_id=student_id,
        extra=metadata,
    )
    try:
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("could not write session log for session %s: %s", session_id, message, exc_info=True)
        return None
    return entry


def append_log(
    db: Session,
    session_id: int,
    level: LogLevel,
    message: str,
    context: Optional[str] = None,
    user_id: Optional[int] = None,
    student_id: Optional[int] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> SessionLog:
    """Explicit log append from the API. Unlike add_log, failures propagate."""
    if db.get(GradingSession, session_id) is None:
        raise NotFoundError("Session not found")
    if student_id is not None:
        student = db.get(Student, student_id)
        if student is None or student.grading_session_id != session_id:
            raise NotFoundError("Student not found in this session")

    entry = SessionLog(
        grading_session_id=session_id,
        level=level,
        message=message,
        context=context,
        user_id=user_id,
        student_id=student_id,
        extra=metadata,
    )
    db.add(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LOG_LIMIT
    return max(1, min(limit, MAX_LOG_LIMIT))


def get_session_logs(db: Session, session_id: int, limit: Optional[int] = None) -> list[SessionLog]:
    if db.get(GradingSession, session_id) is None:
        raise NotFoundError("Session not found")

    return (
        db.query(SessionLog)
        .filter(SessionLog.grading_session_id == session_id)
        .order_by(SessionLog.created_at.desc(), SessionLog.id.desc())
        .limit(clamp_limit(limit))
        .all()
    )


def get_student_logs(db: Session, student_id: int, limit: Optional[int] = None) -> list[SessionLog]:
    return (
        db.query(SessionLog)
        .filter(SessionLog.student_id == student_id)
        .order_by(SessionLog.created_at.desc(), SessionLog.id.desc())
        .limit(clamp_limit(limit))
        .all()
    )
