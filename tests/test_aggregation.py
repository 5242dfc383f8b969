from datetime import date

import pytest

from tutorclub.app.core.errors import ValidationFailed
from tutorclub.app.db.base import Base
from tutorclub.app.db.session import SessionLocal, engine
from tutorclub.app.models.attendance import Attendance
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.session import Session as ClassSession
from tutorclub.app.models.student import Student
from tutorclub.app.services.aggregation import aggregate_month, display_status, project_month


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _student_in_class(db, rate=200_000, start=date(2030, 1, 1), end=None, rate_override=None, name="Math"):
    school_class = SchoolClass(name=name, session_rate_vnd=rate)
    student = Student(full_name="Lan")
    db.add_all([school_class, student])
    db.flush()
    db.add(
        Enrollment(
            student_id=student.id,
            class_id=school_class.id,
            start_date=start,
            end_date=end,
            rate_override_vnd=rate_override,
        )
    )
    db.commit()
    return student, school_class


def _session(db, school_class, day, status="Held", rate_override=None):
    session = ClassSession(class_id=school_class.id, date=day, status=status, rate_override_vnd=rate_override)
    db.add(session)
    db.commit()
    return session


def _attend(db, session, student, status):
    db.add(Attendance(session_id=session.id, student_id=student.id, status=status))
    db.commit()


def test_only_resolved_sessions_are_billable(db):
    student, math = _student_in_class(db)
    _session(db, math, date(2030, 1, 6), "Held")
    _session(db, math, date(2030, 1, 13), "Canceled")
    _session(db, math, date(2030, 1, 20), "Holiday")
    _session(db, math, date(2030, 1, 27), "Scheduled")
    resolved = _session(db, math, date(2030, 1, 30), "Scheduled")
    _attend(db, resolved, student, "Absent")

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert len(aggregate.sessions) == 5
    assert [s.date for s in aggregate.billable_sessions] == [date(2030, 1, 6), date(2030, 1, 30)]
    assert aggregate.billable_sessions[0].status == "Present"
    assert aggregate.billable_sessions[1].status == "Absent"
    assert aggregate.base_amount == 400_000


def test_excused_is_billed_and_reported_as_loss(db):
    student, math = _student_in_class(db)
    held = _session(db, math, date(2030, 1, 6), "Held")
    _attend(db, held, student, "Excused")
    _session(db, math, date(2030, 1, 13), "Held")

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert aggregate.base_amount == 400_000
    assert aggregate.excused_loss == 200_000


def test_rate_precedence(db):
    student, math = _student_in_class(db, rate=200_000, rate_override=180_000)
    _session(db, math, date(2030, 1, 6), "Held")
    _session(db, math, date(2030, 1, 13), "Held", rate_override=150_000)

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert [s.rate for s in aggregate.billable_sessions] == [180_000, 150_000]


def test_non_positive_rate_contributes_nothing(db):
    student, math = _student_in_class(db, rate=0)
    _session(db, math, date(2030, 1, 6), "Held")

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert aggregate.billable_sessions == []
    assert aggregate.base_amount == 0


def test_sessions_outside_enrollment_window_are_ignored(db):
    student, math = _student_in_class(db, start=date(2030, 1, 10), end=date(2030, 1, 20))
    _session(db, math, date(2030, 1, 6), "Held")
    _session(db, math, date(2030, 1, 10), "Held")
    _session(db, math, date(2030, 1, 20), "Held")
    _session(db, math, date(2030, 1, 27), "Held")

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert [s.date for s in aggregate.sessions] == [date(2030, 1, 10), date(2030, 1, 20)]


def test_per_class_totals_and_class_filter(db):
    student, math = _student_in_class(db, rate=200_000)
    english = SchoolClass(name="English", session_rate_vnd=300_000)
    db.add(english)
    db.flush()
    db.add(Enrollment(student_id=student.id, class_id=english.id, start_date=date(2030, 1, 1)))
    db.commit()
    _session(db, math, date(2030, 1, 6), "Held")
    _session(db, math, date(2030, 1, 13), "Held")
    _session(db, english, date(2030, 1, 8), "Held")

    aggregate = aggregate_month(db, student.id, "2030-01")
    only_english = aggregate_month(db, student.id, "2030-01", class_id=english.id)

    assert aggregate.base_amount == 700_000
    assert aggregate.per_class[math.id].amount == 400_000
    assert aggregate.per_class[english.id].session_count == 1
    assert only_english.base_amount == 300_000
    assert list(only_english.per_class) == [english.id]


def test_sessions_ordered_by_date(db):
    student, math = _student_in_class(db)
    _session(db, math, date(2030, 1, 20), "Held")
    _session(db, math, date(2030, 1, 5), "Held")

    aggregate = aggregate_month(db, student.id, "2030-01")

    assert [s.date for s in aggregate.sessions] == [date(2030, 1, 5), date(2030, 1, 20)]


def test_projection_counts_scheduled_and_held(db):
    student, math = _student_in_class(db)
    _session(db, math, date(2030, 1, 6), "Held")
    _session(db, math, date(2030, 1, 13), "Scheduled")
    _session(db, math, date(2030, 1, 20), "Canceled")

    projected = project_month(db, student.id, "2030-01")

    assert projected[math.id].session_count == 2
    assert projected[math.id].amount == 400_000


def test_future_session_displays_as_scheduled(db):
    student, math = _student_in_class(db)
    session = _session(db, math, date(2030, 1, 6), "Canceled")

    assert display_status(session, today=date(2029, 12, 31)) == "Scheduled"
    assert display_status(session, today=date(2030, 1, 7)) == "Canceled"


def test_invalid_month_rejected(db):
    student, _ = _student_in_class(db)
    with pytest.raises(ValidationFailed):
        aggregate_month(db, student.id, "2030-1")
