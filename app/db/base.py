from app.db.base_class import Base  # noqa: F401

# import models so Base.metadata knows every table
from app.models import (  # noqa: F401
    grading_session,
    poll_lease,
    question_score,
    session_log,
    student,
    student_feedback,
    user,
)
