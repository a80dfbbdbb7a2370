import json

from app.models.enums import GradingStatus, SessionStatus
from app.models.student import Student


def session_payload(**overrides):
    payload = {
        "title": "Physics Midterm",
        "subject": "Physics",
        "exam_year": "2024",
        "num_students": 3,
        "grading_rubric": json.dumps({"q1": {"max_score": 10}}),
    }
    payload.update(overrides)
    return payload


def create_session(client, **overrides):
    r = client.post("/sessions", json=session_payload(**overrides))
    assert r.status_code == 201, r.text
    return r.json()


def test_create_and_list_sessions(client):
    created = create_session(client)
    assert created["status"] == "PENDING"

    r = client.get("/sessions")
    assert r.status_code == 200
    rows = r.json()
    assert [row["id"] for row in rows] == [created["id"]]
    assert rows[0]["student_count"] == 0


def test_create_session_validation_errors(client):
    r = client.post("/sessions", json=session_payload(grading_rubric="{not json"))
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    assert body["details"][0]["loc"][-1] == "grading_rubric"

    r = client.post("/sessions", json=session_payload(exam_year="24", num_students=0))
    assert r.status_code == 400
    fields = {d["loc"][-1] for d in r.json()["details"]}
    assert fields == {"exam_year", "num_students"}


def test_get_session_detail_with_students_and_logs(client):
    created = create_session(client)
    r = client.post(
        f"/sessions/{created['id']}/students",
        json=[{"name": "Ada"}, {"name": "Brian", "file_name": "brian.pdf", "file_size": 1024}],
    )
    assert r.status_code == 201, r.text
    students = r.json()
    assert [s["status"] for s in students] == ["PENDING", "PENDING"]
    assert students[0]["uploaded_at"] is None
    assert students[1]["uploaded_at"] is not None

    r = client.get(f"/sessions/{created['id']}")
    assert r.status_code == 200
    detail = r.json()
    assert [s["name"] for s in detail["students"]] == ["Ada", "Brian"]
    assert detail["log_count"] == 3
    assert detail["recent_logs"][0]["message"] == "Student Brian added to session"


def test_unknown_session_is_404(client):
    r = client.get("/sessions/4242")
    assert r.status_code == 404
    assert r.json() == {"error": "Session not found"}

    r = client.post("/sessions/4242/students", json=[{"name": "Ada"}])
    assert r.status_code == 404


def test_update_and_delete_session(client, db):
    created = create_session(client)
    client.post(f"/sessions/{created['id']}/students", json=[{"name": "Ada"}])

    r = client.patch(f"/sessions/{created['id']}", json=session_payload(title="Final"))
    assert r.status_code == 200
    assert r.json()["title"] == "Final"

    r = client.delete(f"/sessions/{created['id']}")
    assert r.status_code == 204
    assert client.get(f"/sessions/{created['id']}").status_code == 404
    assert db.query(Student).count() == 0


def test_status_counts_and_cancellation(client, make_session):
    session = make_session(
        [GradingStatus.PENDING, GradingStatus.PROCESSING, GradingStatus.COMPLETED, GradingStatus.FAILED]
    )

    r = client.get(f"/sessions/{session.id}/status")
    assert r.status_code == 200
    assert r.json() == {
        "id": session.id,
        "status": "PENDING",
        "total_students": 4,
        "completed_students": 1,
        "failed_students": 1,
        "processing_students": 1,
        "pending_students": 1,
    }

    r = client.patch(f"/sessions/{session.id}/status", json={"status": "COMPLETED"})
    assert r.status_code == 400

    r = client.patch(f"/sessions/{session.id}/status", json={"status": "CANCELLED"})
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"


def test_completed_session_cannot_be_cancelled(client, make_session):
    session = make_session([GradingStatus.COMPLETED], session_status=SessionStatus.COMPLETED)

    r = client.patch(f"/sessions/{session.id}/status", json={"status": "CANCELLED"})
    assert r.status_code == 409


def test_session_logs_append_and_list(client):
    created = create_session(client)

    r = client.post(
        f"/sessions/{created['id']}/logs",
        json={"level": "WARNING", "message": "Scanner jammed", "context": "ui", "metadata": {"page": 3}},
    )
    assert r.status_code == 201, r.text
    assert r.json()["metadata"] == {"page": 3}

    r = client.get(f"/sessions/{created['id']}/logs", params={"limit": 1})
    assert r.status_code == 200
    logs = r.json()
    assert len(logs) == 1
    assert logs[0]["message"] == "Scanner jammed"
    assert logs[0]["level"] == "WARNING"


def test_session_log_rejects_student_from_another_session(client, make_session):
    session = make_session([GradingStatus.PENDING])
    other = make_session([GradingStatus.PENDING], title="Final")

    r = client.post(
        f"/sessions/{session.id}/logs",
        json={"level": "INFO", "message": "Rescanned", "student_id": other.students[0].id},
    )
    assert r.status_code == 404
    assert r.json()["error"] == "Student not found in this session"

    r = client.post(
        f"/sessions/{session.id}/logs",
        json={"level": "INFO", "message": "Rescanned", "student_id": session.students[0].id},
    )
    assert r.status_code == 201, r.text


def test_manual_grading_update_completes_session(client, make_session):
    session = make_session([GradingStatus.PROCESSING], with_tasks=False)
    student_id = session.students[0].id

    r = client.patch(
        f"/students/{student_id}/grading",
        json={
            "task_id": "manual-1",
            "status": "COMPLETED",
            "scores": [
                {"question_id": "q1", "score": 8, "max_score": 10},
                {"question_id": "q2", "score": 4, "max_score": 10},
            ],
            "feedback": [
                {"question_id": "q1", "feedback": "Clear derivation", "score": 8, "max_score": 10, "type": "STRENGTH"},
            ],
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["task_id"] == "manual-1"
    assert (body["total_score"], body["max_score"], body["percentage"]) == (12, 20, 60)
    assert body["feedback"][0]["type"] == "STRENGTH"

    detail = client.get(f"/sessions/{session.id}").json()
    assert detail["status"] == "COMPLETED"
    assert detail["average_score"] == 60


def test_regrading_refreshes_session_statistics(client, make_session):
    session = make_session([GradingStatus.PROCESSING], with_tasks=False)
    url = f"/students/{session.students[0].id}/grading"

    for score in (9, 2):
        r = client.patch(
            url,
            json={"status": "COMPLETED", "scores": [{"question_id": "q1", "score": score, "max_score": 10}]},
        )
        assert r.status_code == 200, r.text

    detail = client.get(f"/sessions/{session.id}").json()
    assert detail["status"] == "COMPLETED"
    assert detail["average_score"] == 20
    assert detail["passing_rate"] == 0


def test_manual_grading_feedback_is_validated(client, make_session):
    session = make_session([GradingStatus.PENDING])

    r = client.patch(
        f"/students/{session.students[0].id}/grading",
        json={
            "status": "COMPLETED",
            "feedback": [{"question_id": "q1", "feedback": "", "score": -1, "max_score": 0}],
        },
    )
    assert r.status_code == 400
    fields = {d["loc"][-1] for d in r.json()["details"]}
    assert fields == {"feedback", "score", "max_score"}


def test_retry_failed_students(client, make_session, db):
    session = make_session([GradingStatus.COMPLETED, GradingStatus.FAILED], session_status=SessionStatus.COMPLETED)
    failed_id = session.students[1].id

    r = client.post(f"/sessions/{session.id}/retry")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "IN_PROGRESS"
    assert body["completed_at"] is None

    db.expire_all()
    retried = db.get(Student, failed_id)
    assert retried.status == GradingStatus.PENDING
    assert retried.task_id is None
