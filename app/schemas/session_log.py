from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import LogLevel


class SessionLogCreate(BaseModel):
    level: LogLevel = LogLevel.INFO
    message: str = Field(min_length=1)
    context: Optional[str] = Field(default=None, max_length=50)
    student_id: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None


class SessionLogRead(BaseModel):
    id: int
    grading_session_id: int
    student_id: Optional[int] = None
    user_id: Optional[int] = None
    level: LogLevel
    message: str
    context: Optional[str] = None
    metadata: Optional[Any] = Field(default=None, validation_alias="extra")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
