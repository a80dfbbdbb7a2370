from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from app.models.enums import GradingStatus


class GradingTaskResult(BaseModel):
    """Status document returned by the grading server. Its schema is theirs, keep extras."""

    status: Any = None
    progress: Any = None
    result: Any = None
    error: Any = None

    model_config = ConfigDict(extra="allow")


class TaskStatusPush(GradingTaskResult):
    """Real-time status relayed from the grading server's WebSocket channel."""

    details: Optional[dict[str, Any]] = None


class TaskCheckResult(BaseModel):
    student_id: Optional[int] = None
    task_id: str
    old_status: Optional[GradingStatus] = None
    new_status: Optional[GradingStatus] = None
    status: str
    updated: bool
    error: Optional[str] = None


class BatchCheckResult(BaseModel):
    processed: int
    updated: int
    errors: int
    skipped: bool = False
    results: list[TaskCheckResult] = []


class OldestPendingTask(BaseModel):
    task_id: str
    student_name: str
    created_at: datetime


class MonitoringStats(BaseModel):
    total_pending_tasks: int
    total_processing_tasks: int
    total_active_sessions: int
    oldest_pending_task: Optional[OldestPendingTask] = None


class TaskStudentRead(BaseModel):
    student_id: int
    session_id: int
    student_name: str
    student_number: Optional[str] = None


class VerifiedStudent(BaseModel):
    id: int
    name: str
    student_number: Optional[str] = None
    status: GradingStatus
    graded_at: Optional[datetime] = None
    session_id: int
    has_raw_grading_output: bool
    raw_grading_output: Optional[Any] = None


class VerifyResultsRead(BaseModel):
    task_id: str
    student: VerifiedStudent
