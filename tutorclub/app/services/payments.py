"""Payment recording: a payment row plus its ledger credit, together or not at all."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import BillingError, NotFound, ValidationFailed
from tutorclub.app.core.time import as_utc, month_of
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.payment import Payment
from tutorclub.app.models.student import Student
from tutorclub.app.schemas.payment import PaymentRecord
from tutorclub.app.services import ledger
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.tuition import generate_invoice

logger = logging.getLogger(__name__)


def post_payment(
    db: Session,
    student_id: int,
    amount: int,
    method: str,
    occurred_at: datetime,
    actor_id: int | None,
    payer_name: str | None = None,
    memo: str | None = None,
    family_payment_id: int | None = None,
) -> tuple[Payment, str]:
    """Flush one payment row and its ledger credit; the caller commits."""
    occurred_at = as_utc(occurred_at)
    month = month_of(occurred_at)
    # Account first: if it cannot be created no payment row is written.
    account = ledger.get_or_create_account(db, student_id)
    payment = Payment(
        student_id=student_id,
        amount=amount,
        method=method,
        payer_name=payer_name,
        memo=memo or f"Payment by {payer_name or 'Unknown'}",
        occurred_at=occurred_at,
        family_payment_id=family_payment_id,
        created_by=actor_id,
    )
    db.add(payment)
    db.flush()
    entry = ledger.post_entry(
        db,
        account,
        month=month,
        kind="payment",
        credit=amount,
        memo=f"Payment received - {method}",
        occurred_at=occurred_at,
        payment_id=payment.id,
        created_by=actor_id,
    )
    return payment, entry.tx_id


def refresh_invoice(db: Session, student_id: int, month: str, actor_id: int | None) -> None:
    """Regenerate the month's invoice if one exists. Failures are logged only."""
    invoice_exists = db.query(Invoice.id).filter(Invoice.student_id == student_id, Invoice.month == month).first()
    if not invoice_exists:
        return
    try:
        generate_invoice(db, student_id, month, actor_id)
    except (BillingError, SQLAlchemyError) as exc:
        logger.error("Failed to refresh invoice for student %s month %s: %s", student_id, month, exc)


def record_payment(db: Session, payload: PaymentRecord, actor_id: int | None) -> Payment:
    """Record a payment and credit the student's tuition account.

    Payments carry no idempotency key: two identical calls record two
    payments. The month's invoice, if already generated, is refreshed
    afterwards; a failure there does not undo the payment.
    """
    if payload.amount <= 0:
        raise ValidationFailed("Payment amount must be positive")
    student = db.get(Student, payload.student_id)
    if student is None:
        raise NotFound(f"Student {payload.student_id} not found")

    month = month_of(as_utc(payload.occurred_at))
    try:
        payment, tx_id = post_payment(
            db,
            student.id,
            payload.amount,
            payload.method,
            payload.occurred_at,
            actor_id,
            payer_name=payload.payer_name,
            memo=payload.memo,
        )
        record_audit(
            db,
            "record_payment",
            "payment",
            payment.id,
            actor_id,
            {"student_id": student.id, "amount": payload.amount, "method": payload.method, "month": month, "tx_id": tx_id},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    logger.info("Recorded payment %s of %s for student %s (%s)", payment.id, payload.amount, student.id, month)

    refresh_invoice(db, student.id, month, actor_id)
    return payment
