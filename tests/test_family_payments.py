from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from tutorclub.app.core.errors import ValidationFailed
from tutorclub.app.core.security import create_access_token
from tutorclub.app.db.base import Base
from tutorclub.app.db.session import SessionLocal, engine
from tutorclub.app.main import app
from tutorclub.app.models.audit_log import AuditLog
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.family import Family
from tutorclub.app.models.family_payment import FamilyPayment
from tutorclub.app.models.payment import Payment
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.session import Session as ClassSession
from tutorclub.app.models.student import Student
from tutorclub.app.models.user import User
from tutorclub.app.schemas.payment import FamilyPaymentRecord, ManualAllocation
from tutorclub.app.services import ledger
from tutorclub.app.services.family_payments import allocate, record_family_payment
from tutorclub.app.services.tuition import generate_invoice

PAID_AT = datetime(2030, 5, 2, 10, 0, tzinfo=timezone.utc)


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


def _billed(db, family, *days):
    """A sibling with one 200,000 session per day, invoiced month by month."""
    school_class = SchoolClass(name="English", session_rate_vnd=200_000)
    student = Student(full_name="Sibling", family_id=family.id)
    db.add_all([school_class, student])
    db.flush()
    db.add(Enrollment(student_id=student.id, class_id=school_class.id, start_date=date(2030, 1, 1)))
    for day in days:
        db.add(ClassSession(class_id=school_class.id, date=day, status="Held"))
    db.commit()
    for month in sorted({day.strftime("%Y-%m") for day in days}):
        generate_invoice(db, student.id, month)
    return student


@pytest.fixture
def household(db):
    family = Family(name="Pham")
    db.add(family)
    db.commit()
    elder = _billed(db, family, date(2030, 3, 10), date(2030, 4, 7))
    younger = _billed(db, family, date(2030, 4, 14))
    return family, elder, younger


def _payload(family, students, amount, **kwargs):
    return FamilyPaymentRecord(
        family_id=family.id,
        student_ids=[student.id for student in students],
        amount=amount,
        method="bank_transfer",
        occurred_at=PAID_AT,
        **kwargs,
    )


def test_pro_rata_split_rounds_half_up():
    assert allocate("pro-rata", 100_000, {1: 100_000, 2: 200_000}) == [(1, 33_333), (2, 66_667)]


def test_oldest_debt_is_paid_first(db, household):
    family, elder, younger = household

    result = record_family_payment(db, _payload(family, [younger, elder], 300_000), actor_id=None)

    assert [(item["student_id"], item["amount"]) for item in result["allocations"]] == [(elder.id, 300_000)]
    assert result["contribution_amount"] == 0
    assert ledger.account_balance(db, elder.id) == 100_000
    assert ledger.account_balance(db, younger.id) == 200_000
    payment = db.query(Payment).one()
    assert payment.family_payment_id == result["family_payment_id"]


def test_pro_rata_follows_what_each_sibling_owes(db, household):
    family, elder, younger = household

    result = record_family_payment(
        db, _payload(family, [elder, younger], 300_000, allocation_mode="pro-rata"), actor_id=None
    )

    assert [(item["student_id"], item["amount"]) for item in result["allocations"]] == [
        (elder.id, 200_000),
        (younger.id, 100_000),
    ]
    assert db.query(Payment).count() == 2
    audit = db.query(AuditLog).filter(AuditLog.action == "record_family_payment").one()
    assert audit.diff["allocation_mode"] == "pro-rata"


def test_manual_leftover_stays_as_credit_on_first_student(db, household):
    family, elder, younger = household
    manual = [ManualAllocation(student_id=elder.id, amount=50_000), ManualAllocation(student_id=younger.id, amount=100_000)]

    result = record_family_payment(
        db,
        _payload(family, [elder, younger], 200_000, allocation_mode="manual", manual_allocations=manual),
        actor_id=None,
    )

    assert [(item["student_id"], item["amount"]) for item in result["allocations"]] == [
        (elder.id, 100_000),
        (younger.id, 100_000),
    ]
    assert sum(payment.amount for payment in db.query(Payment).all()) == 200_000


def test_overpayment_as_contribution_needs_consent(db, household):
    family, elder, younger = household
    payload = _payload(family, [elder, younger], 700_000, leftover_handling="voluntary_contribution")

    with pytest.raises(ValidationFailed):
        record_family_payment(db, payload, actor_id=None)

    assert db.query(FamilyPayment).count() == 0
    assert db.query(Payment).count() == 0


def test_overpayment_as_contribution_with_consent(db, household):
    family, elder, younger = household
    payload = _payload(
        family, [elder, younger], 700_000, leftover_handling="voluntary_contribution", consent_given=True
    )

    result = record_family_payment(db, payload, actor_id=None)

    assert result["contribution_amount"] == 100_000
    assert sum(item["amount"] for item in result["allocations"]) == 600_000
    assert ledger.account_balance(db, elder.id) == 0
    assert ledger.account_balance(db, younger.id) == 0


def test_student_outside_family_is_rejected(db, household):
    family, elder, _ = household
    stranger = Student(full_name="Neighbour")
    db.add(stranger)
    db.commit()

    with pytest.raises(ValidationFailed):
        record_family_payment(db, _payload(family, [elder, stranger], 100_000), actor_id=None)

    assert db.query(Payment).count() == 0


def test_manual_allocations_cannot_exceed_amount(db, household):
    family, elder, younger = household
    manual = [ManualAllocation(student_id=elder.id, amount=90_000), ManualAllocation(student_id=younger.id, amount=20_000)]

    with pytest.raises(ValidationFailed):
        record_family_payment(
            db,
            _payload(family, [elder, younger], 100_000, allocation_mode="manual", manual_allocations=manual),
            actor_id=None,
        )


def test_family_payment_endpoint(db, household):
    family, elder, younger = household
    admin = User(email="admin@example.com", hashed_password="x", is_admin=True)
    db.add(admin)
    db.commit()
    client = TestClient(app)

    resp = client.post(
        "/payments/family",
        json={
            "familyId": family.id,
            "studentIds": [elder.id, younger.id],
            "amount": 600_000,
            "method": "cash",
            "occurredAt": "2030-05-02T10:00:00Z",
            "allocationMode": "oldest-first",
        },
        headers={"Authorization": f"Bearer {create_access_token(user_id=admin.id)}"},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["success"] is True
    assert [item["studentId"] for item in data["allocations"]] == [elder.id, younger.id]
    assert data["contributionAmount"] == 0
