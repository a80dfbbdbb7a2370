"""Normalize grading results into one shape.

The grading server has returned results as ``{"result": {"results": {...}}}``,
``{"results": {...}}`` and flat ``{"total_score", "max_score", "feedback"}``
documents, and per-question feedback either as a list or keyed by question id.
Nothing outside this module should care which one it got.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class QuestionResult:
    question_id: str
    score: float
    max_score: float
    feedback: str = ""
    confidence: Optional[float] = None
    keywords: Optional[list[str]] = None


@dataclass
class GradingPayload:
    raw: dict
    questions: list[QuestionResult] = field(default_factory=list)
    reported_total: Optional[float] = None
    reported_max: Optional[float] = None


def compute_percentage(total_score: float, max_score: float) -> float:
    if not max_score or max_score <= 0:
        return 0.0
    return (total_score / max_score) * 100


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _question(question_id: Any, item: Any) -> Optional[QuestionResult]:
    if not isinstance(item, dict):
        return None
    qid = item.get("question_id", question_id)
    if qid is None:
        return None

    keywords = item.get("keywords")
    if not isinstance(keywords, list):
        keywords = None

    return QuestionResult(
        question_id=str(qid),
        score=_to_float(item.get("score")) or 0.0,
        max_score=_to_float(item.get("max_score")) or 0.0,
        feedback=str(item.get("feedback") or ""),
        confidence=_to_float(item.get("confidence")),
        keywords=keywords,
    )


def _questions(items: Any) -> list[QuestionResult]:
    if isinstance(items, dict):
        pairs = items.items()
    elif isinstance(items, list):
        pairs = ((None, item) for item in items)
    else:
        return []

    out = []
    for key, item in pairs:
        q = _question(key, item)
        if q is not None:
            out.append(q)
    return out


def normalize_result_payload(result: Any) -> Optional[GradingPayload]:
    """Return the canonical payload, or None when there is nothing to persist."""
    if not isinstance(result, dict) or not result:
        return None

    output = result
    nested = result.get("result")
    if isinstance(nested, dict) and "results" in nested:
        output = nested

    body = output.get("results") if isinstance(output.get("results"), dict) else output

    questions = _questions(body.get("feedback"))
    if not questions:
        questions = _questions(body.get("questions"))

    return GradingPayload(
        raw=output,
        questions=questions,
        reported_total=_to_float(body.get("total_score")),
        reported_max=_to_float(body.get("max_score")),
    )
