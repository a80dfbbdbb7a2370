"""Session status is derived from its students, never set by hand.

The only exceptions are creation (PENDING) and cancellation (CANCELLED).
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import PASSING_PERCENTAGE
from app.core.errors import NotFoundError, PersistenceError
from app.models.enums import GradingStatus, LogLevel, SessionStatus
from app.models.grading_session import GradingSession
from app.models.student import Student
from app.services.session_logs import add_log

logger = logging.getLogger(__name__)


def decide_session_status(
    current: SessionStatus, student_statuses: Iterable[GradingStatus]
) -> SessionStatus:
    counts = Counter(student_statuses)
    total = sum(counts.values())
    completed = counts[GradingStatus.COMPLETED]
    failed = counts[GradingStatus.FAILED]
    processing = counts[GradingStatus.PROCESSING]

    # every student reached a terminal state, failures included
    if total > 0 and completed + failed == total:
        return SessionStatus.COMPLETED
    if processing > 0 or completed > 0:
        return SessionStatus.IN_PROGRESS
    # a finished session that gained unfinished students is back in progress
    if current == SessionStatus.COMPLETED and total > 0:
        return SessionStatus.IN_PROGRESS
    return current


def compute_statistics(percentages: list[float]) -> Optional[dict[str, float]]:
    if not percentages:
        return None

    passing = sum(1 for p in percentages if p >= PASSING_PERCENTAGE)
    return {
        "average_score": sum(percentages) / len(percentages),
        "highest_score": max(percentages),
        "lowest_score": min(percentages),
        "passing_rate": passing / len(percentages) * 100,
    }


def clear_statistics(session: GradingSession) -> None:
    session.average_score = None
    session.highest_score = None
    session.lowest_score = None
    session.passing_rate = None


def apply_statistics(db: Session, session: GradingSession) -> None:
    """Fill in aggregate scores from completed students. Does not commit."""
    rows = (
        db.query(Student.percentage)
        .filter(
            Student.grading_session_id == session.id,
            Student.status == GradingStatus.COMPLETED,
            Student.percentage.is_not(None),
        )
        .all()
    )
    stats = compute_statistics([r.percentage for r in rows])
    if stats is None:
        clear_statistics(session)
        return

    for key, value in stats.items():
        setattr(session, key, value)


def _commit_session(db: Session, session: GradingSession) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to update session status", details=str(e)) from e
    db.refresh(session)


def check_and_update_session_status(db: Session, session_id: int) -> GradingSession:
    session = db.get(GradingSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")

    if session.status == SessionStatus.CANCELLED:
        return session

    statuses = [
        s for (s,) in db.query(Student.status).filter(Student.grading_session_id == session_id)
    ]
    old_status = session.status
    new_status = decide_session_status(old_status, statuses)
    if new_status == old_status:
        # scores of completed students may have changed since completion
        if new_status == SessionStatus.COMPLETED:
            apply_statistics(db, session)
            if db.is_modified(session):
                _commit_session(db, session)
        return session

    now = datetime.now(timezone.utc)
    session.status = new_status
    if new_status == SessionStatus.IN_PROGRESS and session.started_at is None:
        session.started_at = now
    if new_status == SessionStatus.COMPLETED:
        session.completed_at = now
        apply_statistics(db, session)
    elif old_status == SessionStatus.COMPLETED:
        session.completed_at = None
        clear_statistics(session)

    _commit_session(db, session)

    logger.info("session %s status %s -> %s", session_id, old_status.value, new_status.value)
    add_log(
        db,
        session_id,
        LogLevel.SUCCESS if new_status == SessionStatus.COMPLETED else LogLevel.INFO,
        f"Session status changed to {new_status.value}",
        context="system",
        metadata={"old_status": old_status.value, "new_status": new_status.value},
    )
    return session
