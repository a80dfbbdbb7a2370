from typing import Iterable, Optional

from app.models.enums import FeedbackType
from app.models.question_score import QuestionScore
from app.models.student import Student
from app.models.student_feedback import StudentFeedback
from app.services.grading_payload import GradingPayload, compute_percentage


def _set_totals(student: Student, total_score: float, max_score: float) -> None:
    student.total_score = total_score
    student.max_score = max_score
    student.percentage = compute_percentage(total_score, max_score)


def replace_question_scores(student: Student, scores: Iterable[tuple[str, float, float]]) -> None:
    """Swap the student's question scores for ``scores`` and recompute totals.

    The old rows are removed through the delete-orphan cascade on flush.
    """
    rows = [
        QuestionScore(question_id=qid, score=score, max_score=max_score)
        for qid, score, max_score in scores
    ]
    student.question_scores = rows
    _set_totals(
        student,
        sum(r.score for r in rows),
        sum(r.max_score for r in rows),
    )


def replace_feedback(
    student: Student,
    items: Iterable[tuple[str, str, FeedbackType, Optional[float], Optional[list[str]]]],
) -> None:
    student.feedback = [
        StudentFeedback(
            question_id=qid,
            feedback=text,
            type=fb_type,
            confidence=confidence,
            keywords=keywords,
        )
        for qid, text, fb_type, confidence, keywords in items
    ]


def store_grading_payload(student: Student, payload: GradingPayload) -> None:
    student.raw_grading_output = payload.raw

    if payload.questions:
        replace_question_scores(
            student,
            ((q.question_id, q.score, q.max_score) for q in payload.questions),
        )
        replace_feedback(
            student,
            (
                (q.question_id, q.feedback, FeedbackType.GENERAL, q.confidence, q.keywords)
                for q in payload.questions
            ),
        )
        return

    # no per-question breakdown: clear old rows, keep whatever totals were reported
    student.question_scores = []
    student.feedback = []
    if payload.reported_total is not None or payload.reported_max is not None:
        _set_totals(student, payload.reported_total or 0.0, payload.reported_max or 0.0)
