from sqlalchemy import JSON, Column, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.enums import FeedbackType


class StudentFeedback(Base):
    __tablename__ = "student_feedback"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)

    question_id = Column(String(100), nullable=False)
    feedback = Column(Text, nullable=False, default="")
    type = Column(Enum(FeedbackType, native_enum=False, length=20), nullable=False, default=FeedbackType.GENERAL)
    confidence = Column(Float, nullable=True)
    keywords = Column(JSON, nullable=True)

    student = relationship("Student", back_populates="feedback")
