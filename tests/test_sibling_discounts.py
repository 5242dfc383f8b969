from datetime import date

import pytest

from tutorclub.app.db.base import Base
from tutorclub.app.db.session import SessionLocal, engine
from tutorclub.app.models.audit_log import AuditLog
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.family import Family
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.session import Session as ClassSession
from tutorclub.app.models.sibling_discount import SiblingDiscountState
from tutorclub.app.models.student import Student
from tutorclub.app.services import ledger
from tutorclub.app.services import sibling as sibling_service
from tutorclub.app.services.sibling import compute_sibling_discounts, tie_hash, watch_sibling_threshold
from tutorclub.app.services.tuition import calculate_tuition, generate_invoice

MONTH = "2030-03"


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


def _family(db, percent_override=None):
    family = Family(name="Tran", sibling_percent_override=percent_override)
    db.add(family)
    db.commit()
    return family


def _class(db, name, rate, sessions=4, status="Scheduled"):
    school_class = SchoolClass(name=name, session_rate_vnd=rate)
    db.add(school_class)
    db.flush()
    for week in range(sessions):
        db.add(ClassSession(class_id=school_class.id, date=date(2030, 3, 4 + week * 7), status=status))
    db.commit()
    return school_class


def _student(db, family, *classes, is_active=True):
    student = Student(full_name="Child", family_id=family.id, is_active=is_active)
    db.add(student)
    db.flush()
    for school_class in classes:
        db.add(Enrollment(student_id=student.id, class_id=school_class.id, start_date=date(2030, 1, 1)))
    db.commit()
    return student


def _enroll(db, student, school_class):
    db.add(Enrollment(student_id=student.id, class_id=school_class.id, start_date=date(2030, 1, 1)))
    db.commit()


def _state(db, family):
    return (
        db.query(SiblingDiscountState)
        .filter(SiblingDiscountState.family_id == family.id, SiblingDiscountState.month == MONTH)
        .one()
    )


def test_lowest_contribution_wins_on_highest_class(db):
    family = _family(db)
    piano = _class(db, "Piano", 200_000)
    art = _class(db, "Art", 50_000)
    math = _class(db, "Math", 150_000)
    elder = _student(db, family, piano, art)
    younger = _student(db, family, math)

    result = compute_sibling_discounts(db, MONTH)

    assert result["processed"] == 1
    assert result["errors"] == []
    state = _state(db, family)
    assert state.status == "assigned"
    assert state.winner_student_id == younger.id
    assert state.winner_class_id == math.id
    assert state.sibling_percent == 5
    assert state.projected_base_snapshot == 600_000
    assert elder.id != state.winner_student_id


def test_discount_applies_only_to_winner_class(db):
    family = _family(db)
    piano = _class(db, "Piano", 200_000, status="Held")
    math = _class(db, "Math", 150_000, status="Held")
    art = _class(db, "Art", 100_000, status="Held")
    _student(db, family, piano)
    winner = _student(db, family, math, art)

    compute_sibling_discounts(db, MONTH)
    tuition = calculate_tuition(db, winner.id, MONTH)

    assert tuition.base_amount == 1_000_000
    sibling_lines = [line for line in tuition.discounts if line.is_sibling_winner]
    assert len(sibling_lines) == 1
    assert sibling_lines[0].amount == 30_000
    assert tuition.sibling_state.is_winner is True


def test_non_winner_gets_state_but_no_discount(db):
    family = _family(db)
    piano = _class(db, "Piano", 200_000, status="Held")
    math = _class(db, "Math", 150_000, status="Held")
    loser = _student(db, family, piano)
    _student(db, family, math)

    compute_sibling_discounts(db, MONTH)
    tuition = calculate_tuition(db, loser.id, MONTH)

    assert tuition.discounts == []
    assert tuition.sibling_state.status == "assigned"
    assert tuition.sibling_state.is_winner is False


def test_single_student_family_stays_pending(db):
    family = _family(db)
    math = _class(db, "Math", 150_000)
    _student(db, family, math)
    _student(db, family)

    result = compute_sibling_discounts(db, MONTH)

    state = _state(db, family)
    assert state.status == "pending"
    assert state.winner_student_id is None
    assert "need >=2" in state.reason
    assert result["results"][0]["status"] == "pending"


def test_inactive_student_does_not_count(db):
    family = _family(db)
    math = _class(db, "Math", 150_000)
    _student(db, family, math)
    _student(db, family, math, is_active=False)

    compute_sibling_discounts(db, MONTH)

    assert _state(db, family).status == "pending"


def test_three_students_rerun_is_stable(db):
    family = _family(db, percent_override=10)
    classes = [_class(db, f"Class {i}", rate) for i, rate in enumerate((300_000, 120_000, 250_000))]
    students = [_student(db, family, school_class) for school_class in classes]

    compute_sibling_discounts(db, MONTH)
    first = _state(db, family).winner_student_id
    compute_sibling_discounts(db, MONTH)
    db.expire_all()

    assert _state(db, family).winner_student_id == first == students[1].id
    assert _state(db, family).sibling_percent == 10
    assert db.query(SiblingDiscountState).count() == 1


def test_adding_higher_contributor_keeps_winner(db):
    family = _family(db)
    cheap = _class(db, "Phonics", 150_000)
    pricey = _class(db, "SAT", 400_000)
    winner = _student(db, family, cheap)
    _student(db, family, pricey)
    compute_sibling_discounts(db, MONTH)
    before = _state(db, family)
    before_winner, before_percent = before.winner_student_id, before.sibling_percent

    _student(db, family, _class(db, "Debate", 300_000))
    compute_sibling_discounts(db, MONTH)
    db.expire_all()

    after = _state(db, family)
    assert after.winner_student_id == before_winner == winner.id
    assert after.sibling_percent == before_percent == 5


def test_tie_is_broken_by_stable_hash(db):
    family = _family(db)
    first_class = _class(db, "Math A", 150_000)
    second_class = _class(db, "Math B", 150_000)
    a = _student(db, family, first_class)
    b = _student(db, family, second_class)

    compute_sibling_discounts(db, MONTH)

    expected = min((a, b), key=lambda s: (tie_hash(s.id, MONTH), s.id))
    assert _state(db, family).winner_student_id == expected.id
    assert tie_hash(a.id, MONTH) == tie_hash(a.id, MONTH)


def test_second_student_makes_family_eligible_retroactively(db):
    family = _family(db)
    math = _class(db, "Math", 200_000)
    _student(db, family, math)
    _student(db, family)

    compute_sibling_discounts(db, MONTH)
    assert _state(db, family).status == "pending"

    art = _class(db, "Art", 100_000)
    newcomer = db.query(Student).order_by(Student.id.desc()).first()
    _enroll(db, newcomer, art)
    result = compute_sibling_discounts(db, MONTH)

    assert result["results"][0]["status"] == "assigned"
    assert result["results"][0]["retroactive"] is True
    assert result["results"][0]["student_id"] == newcomer.id


def test_watch_assigns_and_credits_existing_invoice(db):
    family = _family(db)
    math = _class(db, "Math", 200_000, status="Held")
    art = _class(db, "Art", 100_000, status="Held")
    _student(db, family, math)
    late = _student(db, family)
    compute_sibling_discounts(db, MONTH)

    _enroll(db, late, art)
    generate_invoice(db, late.id, MONTH)
    assert ledger.account_balance(db, late.id) == 400_000

    summary = watch_sibling_threshold(db, MONTH)

    assert summary == {"month": MONTH, "checked": 1, "assigned": 1, "errors": []}
    invoice = db.query(Invoice).filter(Invoice.student_id == late.id, Invoice.month == MONTH).one()
    assert invoice.discount_amount == 20_000
    assert invoice.total_amount == 380_000
    assert ledger.account_balance(db, late.id) == 380_000
    assert db.query(AuditLog).filter(AuditLog.action == "sibling_retro_credit").count() == 1


def test_watch_ignores_assigned_families(db):
    family = _family(db)
    math = _class(db, "Math", 200_000)
    art = _class(db, "Art", 100_000)
    _student(db, family, math)
    _student(db, family, art)
    compute_sibling_discounts(db, MONTH)

    assert watch_sibling_threshold(db, MONTH) == {"month": MONTH, "checked": 0, "assigned": 0, "errors": []}


def test_winner_keeps_no_discount_when_selected_class_ends(db):
    family = _family(db)
    piano = _class(db, "Piano", 300_000, status="Held")
    math = _class(db, "Math", 150_000, status="Held")
    art = _class(db, "Art", 100_000, status="Held")
    _student(db, family, piano)
    winner = _student(db, family, math, art)
    compute_sibling_discounts(db, MONTH)
    assert _state(db, family).winner_class_id == math.id

    math_enrollment = (
        db.query(Enrollment).filter(Enrollment.student_id == winner.id, Enrollment.class_id == math.id).one()
    )
    math_enrollment.end_date = date(2030, 2, 28)
    db.commit()

    result = calculate_tuition(db, winner.id, MONTH)

    assert result.base_amount == 400_000
    assert result.discounts == []
    assert result.total_amount == 400_000
    assert result.sibling_state.is_winner is True


def test_watch_failure_in_one_family_does_not_stop_the_rest(db, monkeypatch):
    broken_family, healthy_family = _family(db), _family(db)
    late_joiners = []
    for family in (broken_family, healthy_family):
        _student(db, family, _class(db, f"Math {family.id}", 200_000))
        late_joiners.append(_student(db, family))
    compute_sibling_discounts(db, MONTH)
    for late in late_joiners:
        _enroll(db, late, _class(db, f"Art {late.id}", 100_000))

    real_compute = sibling_service.compute_family

    def failing_compute(session, family, month):
        if family.id == broken_family.id:
            raise RuntimeError("projection unavailable")
        return real_compute(session, family, month)

    monkeypatch.setattr(sibling_service, "compute_family", failing_compute)

    summary = watch_sibling_threshold(db, MONTH)
    db.expire_all()

    assert summary == {
        "month": MONTH,
        "checked": 2,
        "assigned": 1,
        "errors": [f"Family {broken_family.id}: projection unavailable"],
    }
    assert _state(db, broken_family).status == "pending"
    assert _state(db, healthy_family).winner_student_id == late_joiners[1].id
