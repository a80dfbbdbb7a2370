from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.enums import LogLevel


class SessionLog(Base):
    """Append-only audit entry. Rows are only removed together with their session."""

    __tablename__ = "session_logs"

    id = Column(Integer, primary_key=True, index=True)
    grading_session_id = Column(
        Integer, ForeignKey("grading_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    level = Column(Enum(LogLevel, native_enum=False, length=20), nullable=False, default=LogLevel.INFO)
    message = Column(Text, nullable=False)
    context = Column(String(50), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    grading_session = relationship("GradingSession", back_populates="logs")
