from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.models.user import User
from app.schemas.grading_session import (
    GradingSessionCreate,
    GradingSessionDetail,
    GradingSessionRead,
    GradingSessionSummary,
    SessionStatusRead,
    SessionStatusUpdate,
)
from app.schemas.session_log import SessionLogCreate, SessionLogRead
from app.schemas.student import StudentCreate, StudentRead
from app.services import grading_sessions
from app.services.session_logs import append_log, get_session_logs

router = APIRouter()

RECENT_LOGS_IN_DETAIL = 100


@router.get("", response_model=list[GradingSessionSummary])
def list_sessions(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    rows = grading_sessions.list_sessions(db, me)
    return [
        GradingSessionSummary.model_validate(s).model_copy(update={"student_count": n})
        for s, n in rows
    ]


@router.post("", response_model=GradingSessionRead, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: GradingSessionCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return grading_sessions.create_session(db, me, payload)


@router.get("/{session_id}", response_model=GradingSessionDetail)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    session = grading_sessions.get_session(db, session_id, user_id=me.id)
    detail = GradingSessionDetail.model_validate(session, from_attributes=True)
    return detail.model_copy(
        update={
            "recent_logs": [
                SessionLogRead.model_validate(log)
                for log in get_session_logs(db, session_id, RECENT_LOGS_IN_DETAIL)
            ],
            "log_count": grading_sessions.count_session_logs(db, session_id),
        }
    )


@router.patch("/{session_id}", response_model=GradingSessionRead)
def update_session(
    session_id: int,
    payload: GradingSessionCreate,
    db: Session = Depends(get_db),
):
    return grading_sessions.update_session(db, session_id, payload)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: int,
    db: Session = Depends(get_db),
):
    grading_sessions.delete_session(db, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/status", response_model=SessionStatusRead)
def get_session_status(
    session_id: int,
    db: Session = Depends(get_db),
):
    return grading_sessions.session_status_counts(db, session_id)


@router.patch("/{session_id}/status", response_model=GradingSessionRead)
def update_session_status(
    session_id: int,
    payload: SessionStatusUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return grading_sessions.cancel_session(db, session_id, payload.status, user_id=me.id)


@router.post("/{session_id}/retry", response_model=GradingSessionRead)
def retry_failed_students(
    session_id: int,
    db: Session = Depends(get_db),
):
    return grading_sessions.retry_failed_students(db, session_id)


@router.post(
    "/{session_id}/students",
    response_model=list[StudentRead],
    status_code=status.HTTP_201_CREATED,
)
def add_students(
    session_id: int,
    payload: list[StudentCreate],
    db: Session = Depends(get_db),
):
    return grading_sessions.add_students(db, session_id, payload)


@router.get("/{session_id}/logs", response_model=list[SessionLogRead])
def list_session_logs(
    session_id: int,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    return get_session_logs(db, session_id, limit)


@router.post(
    "/{session_id}/logs",
    response_model=SessionLogRead,
    status_code=status.HTTP_201_CREATED,
)
def create_session_log(
    session_id: int,
    payload: SessionLogCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return append_log(
        db,
        session_id,
        payload.level,
        payload.message,
        context=payload.context,
        user_id=me.id,
        student_id=payload.student_id,
        metadata=payload.metadata,
    )
