import pytest

from app.core.errors import NotFoundError
from app.models.enums import GradingStatus, SessionStatus
from app.models.grading_session import GradingSession
from app.models.session_log import SessionLog
from app.models.student import Student
from app.schemas.student import StudentCreate
from app.services.grading_sessions import add_students
from app.services.session_status import (
    check_and_update_session_status,
    compute_statistics,
    decide_session_status,
)

C, F, P, W = (
    GradingStatus.COMPLETED,
    GradingStatus.FAILED,
    GradingStatus.PROCESSING,
    GradingStatus.PENDING,
)


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([C, C, C], SessionStatus.COMPLETED),
        ([C, F, C], SessionStatus.COMPLETED),
        ([F, F], SessionStatus.COMPLETED),
        ([C, W], SessionStatus.IN_PROGRESS),
        ([P, W], SessionStatus.IN_PROGRESS),
        ([W, W], SessionStatus.PENDING),
        ([F, W], SessionStatus.PENDING),
        ([], SessionStatus.PENDING),
    ],
)
def test_decision_table(statuses, expected):
    assert decide_session_status(SessionStatus.PENDING, statuses) == expected


@pytest.mark.parametrize("statuses", [[C, W], [F, W], [F, P]])
def test_completed_session_with_unfinished_students_reopens(statuses):
    assert decide_session_status(SessionStatus.COMPLETED, statuses) == SessionStatus.IN_PROGRESS


def test_statistics_over_given_percentages():
    stats = compute_statistics([80.0, 40.0, 50.0])
    assert stats["average_score"] == pytest.approx(170 / 3)
    assert stats["highest_score"] == 80.0
    assert stats["lowest_score"] == 40.0
    assert stats["passing_rate"] == pytest.approx(200 / 3)
    assert compute_statistics([]) is None


def _set_percentages(db, session, percentages):
    for student, pct in zip(session.students, percentages):
        student.percentage = pct
    db.commit()


def test_all_completed_session_gets_statistics(db, make_session):
    session = make_session([C, C, C, C])
    _set_percentages(db, session, [90.0, 70.0, 50.0, 30.0])

    updated = check_and_update_session_status(db, session.id)

    assert updated.status == SessionStatus.COMPLETED
    assert updated.completed_at is not None
    assert updated.average_score == pytest.approx(60.0)
    assert updated.highest_score == 90.0
    assert updated.lowest_score == 30.0
    assert updated.passing_rate == pytest.approx(75.0)


def test_regrade_refreshes_statistics_of_completed_session(db, make_session):
    session = make_session([C])
    _set_percentages(db, session, [90.0])
    assert check_and_update_session_status(db, session.id).average_score == pytest.approx(90.0)

    _set_percentages(db, session, [20.0])
    updated = check_and_update_session_status(db, session.id)

    assert updated.status == SessionStatus.COMPLETED
    assert updated.average_score == pytest.approx(20.0)
    assert updated.passing_rate == 0
    assert db.query(SessionLog).count() == 1


def test_late_student_reopens_session_and_counts_in_statistics(db, make_session):
    session = make_session([C])
    _set_percentages(db, session, [90.0])
    check_and_update_session_status(db, session.id)

    (late,) = add_students(db, session.id, [StudentCreate(name="Late Student")])
    reopened = db.get(GradingSession, session.id)
    assert reopened.status == SessionStatus.IN_PROGRESS
    assert reopened.completed_at is None
    assert reopened.average_score is None

    student = db.get(Student, late.id)
    student.status = C
    student.percentage = 10.0
    db.commit()
    updated = check_and_update_session_status(db, session.id)

    assert updated.status == SessionStatus.COMPLETED
    assert updated.completed_at is not None
    assert updated.average_score == pytest.approx(50.0)
    assert updated.lowest_score == 10.0


def test_failed_students_are_left_out_of_statistics(db, make_session):
    session = make_session([C, F, C])
    _set_percentages(db, session, [80.0, 10.0, 40.0])

    updated = check_and_update_session_status(db, session.id)

    assert updated.status == SessionStatus.COMPLETED
    assert updated.average_score == pytest.approx(60.0)
    assert updated.lowest_score == 40.0
    assert updated.passing_rate == pytest.approx(50.0)


def test_in_progress_stamps_started_at_once(db, make_session):
    session = make_session([P, W])

    first = check_and_update_session_status(db, session.id)
    started = first.started_at
    assert first.status == SessionStatus.IN_PROGRESS
    assert started is not None

    db.get(Student, session.students[1].id).status = P
    db.commit()
    second = check_and_update_session_status(db, session.id)
    assert second.started_at == started


def test_unchanged_status_writes_nothing(db, make_session):
    session = make_session([W, W])

    check_and_update_session_status(db, session.id)
    check_and_update_session_status(db, session.id)

    assert db.query(SessionLog).count() == 0


def test_status_change_is_logged_once(db, make_session):
    session = make_session([C, C])

    check_and_update_session_status(db, session.id)
    check_and_update_session_status(db, session.id)

    logs = db.query(SessionLog).all()
    assert [log.message for log in logs] == ["Session status changed to COMPLETED"]


def test_cancelled_session_is_not_recomputed(db, make_session):
    session = make_session([C, C], session_status=SessionStatus.CANCELLED)

    assert check_and_update_session_status(db, session.id).status == SessionStatus.CANCELLED


def test_unknown_session(db):
    with pytest.raises(NotFoundError):
        check_and_update_session_status(db, 9999)
