from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.schemas.student import StudentGradingUpdate, StudentRead
from app.services.grading_sessions import update_student_grading

router = APIRouter()


@router.patch("/{student_id}/grading", response_model=StudentRead)
def update_grading(
    student_id: int,
    payload: StudentGradingUpdate,
    db: Session = Depends(get_db),
):
    return update_student_grading(db, student_id, payload)
