from sqlalchemy import Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class QuestionScore(Base):
    __tablename__ = "question_scores"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)

    question_id = Column(String(100), nullable=False)
    score = Column(Float, nullable=False, default=0)
    max_score = Column(Float, nullable=False, default=0)

    student = relationship("Student", back_populates="question_scores")
