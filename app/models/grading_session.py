from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base
from app.models.enums import SessionStatus


class GradingSession(Base):
    __tablename__ = "grading_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_year: Mapped[str] = mapped_column(String(4), nullable=False)
    num_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # rubric is stored verbatim; it is only validated as JSON and forwarded
    grading_rubric: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, native_enum=False, length=20),
        nullable=False,
        default=SessionStatus.PENDING,
        index=True,
    )

    average_score: Mapped[float | None] = mapped_column(Float)
    highest_score: Mapped[float | None] = mapped_column(Float)
    lowest_score: Mapped[float | None] = mapped_column(Float)
    passing_rate: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    user = relationship("User", back_populates="grading_sessions")

    students = relationship(
        "Student",
        back_populates="grading_session",
        cascade="all, delete-orphan",
        order_by="Student.name",
    )

    logs = relationship(
        "SessionLog",
        back_populates="grading_session",
        cascade="all, delete-orphan",
    )
