from app.services.grading_payload import compute_percentage, normalize_result_payload


def test_flat_payload():
    payload = normalize_result_payload(
        {
            "total_score": 15,
            "max_score": 20,
            "feedback": [
                {"question_id": "q1", "score": 8, "max_score": 10, "feedback": "ok", "keywords": ["a"]},
                {"question_id": "q2", "score": 7, "max_score": 10, "feedback": "fine", "confidence": 0.5},
            ],
        }
    )
    assert [q.question_id for q in payload.questions] == ["q1", "q2"]
    assert payload.questions[0].keywords == ["a"]
    assert payload.questions[1].confidence == 0.5
    assert payload.reported_total == 15
    assert payload.reported_max == 20


def test_nested_result_results_is_unwrapped_to_inner_result():
    inner = {
        "status": "COMPLETED",
        "results": {"feedback": {"q1": {"score": 4, "max_score": 5, "feedback": "good"}}},
    }
    payload = normalize_result_payload({"result": inner})

    assert payload.raw == inner
    assert len(payload.questions) == 1
    q = payload.questions[0]
    assert (q.question_id, q.score, q.max_score, q.feedback) == ("q1", 4.0, 5.0, "good")


def test_results_wrapper_keeps_whole_document():
    doc = {"results": {"total_score": 3, "max_score": 10}}
    payload = normalize_result_payload(doc)

    assert payload.raw == doc
    assert payload.questions == []
    assert payload.reported_total == 3
    assert payload.reported_max == 10


def test_bad_numbers_and_items_are_tolerated():
    payload = normalize_result_payload(
        {"feedback": [{"question_id": "q1", "score": "n/a", "max_score": None}, "junk", {"score": 1}]}
    )
    assert len(payload.questions) == 1
    assert payload.questions[0].score == 0.0
    assert payload.questions[0].max_score == 0.0


def test_nothing_to_persist():
    assert normalize_result_payload(None) is None
    assert normalize_result_payload({}) is None
    assert normalize_result_payload(["q1"]) is None


def test_percentage_never_divides_by_zero():
    assert compute_percentage(5, 0) == 0.0
    assert compute_percentage(0, 0) == 0.0
    assert compute_percentage(5, 20) == 25.0
