from datetime import date, time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tutorclub.app.core.errors import NotFound
from tutorclub.app.core.security import create_access_token
from tutorclub.app.db.base import Base
from tutorclub.app.db.session import SessionLocal, engine
from tutorclub.app.main import app
from tutorclub.app.models.payroll_summary import PayrollSummary
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.session import Session as ClassSession
from tutorclub.app.models.teacher import Teacher
from tutorclub.app.models.user import User
from tutorclub.app.services.payroll import calculate_payroll, pay_for_minutes, session_minutes

MONTH = "2030-06"


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


def _teacher(db, rate=120_000, is_active=True):
    teacher = Teacher(full_name="Ms. Thu", hourly_rate_vnd=rate, is_active=is_active)
    db.add(teacher)
    db.commit()
    return teacher


def _class(db, default_teacher=None):
    school_class = SchoolClass(
        name="Physics", session_rate_vnd=200_000, default_teacher_id=default_teacher.id if default_teacher else None
    )
    db.add(school_class)
    db.commit()
    return school_class


def _session(db, school_class, day, start, end, status="Held", teacher=None):
    db.add(
        ClassSession(
            class_id=school_class.id,
            teacher_id=teacher.id if teacher else None,
            date=day,
            start_time=start,
            end_time=end,
            status=status,
        )
    )
    db.commit()


def test_session_minutes_and_pay():
    assert session_minutes(time(18, 0), time(19, 30)) == 90
    assert session_minutes(time(19, 30), time(18, 0)) == 0
    assert session_minutes(None, time(18, 0)) == 0
    assert pay_for_minutes(50, 100_000) == 83_333
    assert pay_for_minutes(90, 120_000) == 180_000


def test_held_sessions_are_paid_and_scheduled_only_projected(db):
    teacher = _teacher(db)
    physics = _class(db)
    _session(db, physics, date(2030, 6, 3), time(18, 0), time(19, 30), teacher=teacher)
    _session(db, physics, date(2030, 6, 10), time(18, 0), time(19, 0), teacher=teacher)
    _session(db, physics, date(2030, 6, 17), time(18, 0), time(19, 0), status="Scheduled", teacher=teacher)
    _session(db, physics, date(2030, 6, 24), time(18, 0), time(19, 0), status="Canceled", teacher=teacher)

    result = calculate_payroll(db, MONTH)

    assert result["totalTeachers"] == 1
    row = result["payrollData"][0]
    assert row["sessionsCountActual"] == 2
    assert row["totalMinutesActual"] == 150
    assert row["totalHoursActual"] == 2.5
    assert row["totalAmountActual"] == 300_000
    assert row["sessionsCountProjected"] == 3
    assert row["totalAmountProjected"] == 420_000
    assert result["grandTotal"] == 300_000
    assert result["grandTotalProjected"] == 420_000


def test_inverted_times_count_as_zero_with_warning(db, caplog):
    teacher = _teacher(db)
    physics = _class(db)
    _session(db, physics, date(2030, 6, 3), time(19, 0), time(18, 0), teacher=teacher)

    with caplog.at_level("WARNING"):
        result = calculate_payroll(db, MONTH)

    row = result["payrollData"][0]
    assert row["sessionsCountActual"] == 1
    assert row["totalMinutesActual"] == 0
    assert row["totalAmountActual"] == 0
    assert any("counted as 0 minutes" in message for message in caplog.messages)


def test_unassigned_sessions_fall_back_to_default_teacher(db):
    teacher = _teacher(db)
    physics = _class(db, default_teacher=teacher)
    _session(db, physics, date(2030, 6, 3), time(8, 0), time(9, 0))

    result = calculate_payroll(db, MONTH, teacher_id=teacher.id)

    assert result["payrollData"][0]["totalAmountActual"] == 120_000


def test_summary_is_overwritten_on_rerun(db):
    teacher = _teacher(db, rate=100_000)
    physics = _class(db)
    _session(db, physics, date(2030, 6, 3), time(8, 0), time(8, 50), teacher=teacher)
    calculate_payroll(db, MONTH)
    _session(db, physics, date(2030, 6, 4), time(8, 0), time(9, 0), teacher=teacher)

    calculate_payroll(db, MONTH)

    summary = db.query(PayrollSummary).one()
    assert summary.sessions_count == 2
    assert summary.total_amount == 183_333
    assert Decimal(str(summary.total_hours)) == Decimal("1.83")


def test_inactive_teachers_are_skipped_and_unknown_teacher_raises(db):
    _teacher(db, is_active=False)

    assert calculate_payroll(db, MONTH)["payrollData"] == []
    with pytest.raises(NotFound):
        calculate_payroll(db, MONTH, teacher_id=999)


def test_payroll_endpoint_requires_admin(db):
    client = TestClient(app)
    admin = User(email="admin@example.com", hashed_password="x", is_admin=True)
    staff = User(email="staff@example.com", hashed_password="x", is_admin=False)
    db.add_all([admin, staff])
    db.commit()
    _teacher(db)

    denied = client.post(
        "/payroll/calculate",
        json={"month": MONTH},
        headers={"Authorization": f"Bearer {create_access_token(user_id=staff.id)}"},
    )
    allowed = client.post(
        "/payroll/calculate",
        json={"month": MONTH},
        headers={"Authorization": f"Bearer {create_access_token(user_id=admin.id)}"},
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["totalTeachers"] == 1
