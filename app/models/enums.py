import enum


class SessionStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class GradingStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_GRADING_STATUSES = (GradingStatus.COMPLETED, GradingStatus.FAILED)
ACTIVE_GRADING_STATUSES = (GradingStatus.PENDING, GradingStatus.PROCESSING)


class LogLevel(str, enum.Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class FeedbackType(str, enum.Enum):
    GENERAL = "GENERAL"
    STRENGTH = "STRENGTH"
    IMPROVEMENT = "IMPROVEMENT"
    SUGGESTION = "SUGGESTION"
