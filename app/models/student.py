from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base
from app.models.enums import GradingStatus


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    grading_session_id: Mapped[int] = mapped_column(
        ForeignKey("grading_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_number: Mapped[str | None] = mapped_column(String(100))
    file_name: Mapped[str | None] = mapped_column(String(255))
    file_size: Mapped[int | None] = mapped_column(Integer)
    uploaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # set once grading has been dispatched to the grading server
    task_id: Mapped[str | None] = mapped_column(String(255), index=True)
    status: Mapped[GradingStatus] = mapped_column(
        Enum(GradingStatus, native_enum=False, length=20),
        nullable=False,
        default=GradingStatus.PENDING,
        index=True,
    )

    total_score: Mapped[float | None] = mapped_column(Float)
    max_score: Mapped[float | None] = mapped_column(Float)
    percentage: Mapped[float | None] = mapped_column(Float)
    raw_grading_output: Mapped[dict | None] = mapped_column(JSON)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    grading_session = relationship("GradingSession", back_populates="students")

    question_scores = relationship(
        "QuestionScore", back_populates="student", cascade="all, delete-orphan"
    )
    feedback = relationship(
        "StudentFeedback", back_populates="student", cascade="all, delete-orphan"
    )
