import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import SessionStatus
from app.schemas.session_log import SessionLogRead
from app.schemas.student import StudentRead


class GradingSessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    subject: str = Field(min_length=1, max_length=100)
    exam_year: str = Field(min_length=4, max_length=4)
    num_students: int = Field(ge=1, le=1000)
    grading_rubric: str

    @field_validator("grading_rubric")
    @classmethod
    def rubric_must_be_json(cls, value: str) -> str:
        try:
            json.loads(value)
        except ValueError:
            raise ValueError("Invalid JSON format")
        return value


class GradingSessionRead(BaseModel):
    id: int
    user_id: int
    title: str
    subject: str
    exam_year: str
    num_students: int
    grading_rubric: str
    status: SessionStatus

    average_score: Optional[float] = None
    highest_score: Optional[float] = None
    lowest_score: Optional[float] = None
    passing_rate: Optional[float] = None

    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GradingSessionSummary(GradingSessionRead):
    student_count: int = 0


class GradingSessionDetail(GradingSessionRead):
    students: list[StudentRead] = []
    recent_logs: list[SessionLogRead] = []
    log_count: int = 0


class SessionStatusRead(BaseModel):
    id: int
    status: SessionStatus
    total_students: int
    completed_students: int
    failed_students: int
    processing_students: int
    pending_students: int


class SessionStatusUpdate(BaseModel):
    status: SessionStatus

