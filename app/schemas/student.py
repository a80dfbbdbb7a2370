from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import FeedbackType, GradingStatus


class StudentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    student_number: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)


class QuestionScoreIn(BaseModel):
    question_id: str = Field(min_length=1)
    score: float = Field(ge=0)
    max_score: float = Field(ge=0)


class QuestionScoreRead(BaseModel):
    question_id: str
    score: float
    max_score: float

    model_config = ConfigDict(from_attributes=True)


class StudentFeedbackIn(BaseModel):
    question_id: str = Field(min_length=1)
    feedback: str = Field(min_length=1)
    score: float = Field(ge=0)
    max_score: float = Field(ge=1)
    type: FeedbackType = FeedbackType.GENERAL
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    keywords: list[str] = []


class StudentFeedbackRead(BaseModel):
    question_id: str
    feedback: str
    type: FeedbackType
    confidence: Optional[float] = None
    keywords: Optional[list[str]] = None

    model_config = ConfigDict(from_attributes=True)


class StudentGradingUpdate(BaseModel):
    task_id: Optional[str] = None
    status: GradingStatus
    scores: list[QuestionScoreIn] = []
    feedback: list[StudentFeedbackIn] = []


class StudentRead(BaseModel):
    id: int
    grading_session_id: int
    name: str
    student_number: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_at: Optional[datetime] = None

    task_id: Optional[str] = None
    status: GradingStatus
    total_score: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None
    raw_grading_output: Optional[Any] = None
    graded_at: Optional[datetime] = None
    created_at: datetime

    question_scores: list[QuestionScoreRead] = []
    feedback: list[StudentFeedbackRead] = []

    model_config = ConfigDict(from_attributes=True)
