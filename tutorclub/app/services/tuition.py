"""Tuition calculation and invoice generation.

``calculate_tuition`` is a pure read: it never writes. ``generate_invoice``
persists the same projection as the (student, month) invoice snapshot and
brings the ledger in line with it, all in one transaction.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tutorclub.app.core.errors import NotFound, ValidationFailed
from tutorclub.app.core.settings import get_settings
from tutorclub.app.core.time import month_end, month_of, month_start, utc_now, validate_month
from tutorclub.app.db.upsert import upsert_snapshot
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.invoice import CONFIRMATION_STATUSES, INVOICE_STATUSES, Invoice
from tutorclub.app.models.payment import Payment
from tutorclub.app.models.student import Student
from tutorclub.app.schemas.tuition import (
    CarrySummary,
    DiscountLineRead,
    PaymentsSummary,
    SessionDetail,
    SiblingStateRead,
    TuitionResult,
)
from tutorclub.app.services import ledger
from tutorclub.app.services.aggregation import aggregate_month
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.billing import compute_carry, determine_invoice_status, determine_payment_status
from tutorclub.app.services.discounts import evaluate_discounts

logger = logging.getLogger(__name__)


def _get_student(db: Session, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def _split_payments(db: Session, student_id: int, month: str) -> tuple[int, int]:
    """Return (payments before the month, payments inside the month)."""
    prior = current = 0
    for amount, occurred_at in db.query(Payment.amount, Payment.occurred_at).filter(Payment.student_id == student_id):
        payment_month = month_of(occurred_at)
        if payment_month < month:
            prior += int(amount)
        elif payment_month == month:
            current += int(amount)
    return prior, current


def _prior_charges(db: Session, student_id: int, month: str) -> int:
    totals = db.query(Invoice.total_amount).filter(Invoice.student_id == student_id, Invoice.month < month).all()
    return sum(int(total or 0) for (total,) in totals)


def calculate_tuition(db: Session, student_id: int, month: str) -> TuitionResult:
    validate_month(month)
    student = _get_student(db, student_id)

    aggregate = aggregate_month(db, student_id, month)
    discounts = evaluate_discounts(db, student, month, aggregate)

    base_amount = aggregate.base_amount
    total_discount = min(discounts.total, base_amount)
    total_amount = max(0, base_amount - total_discount)

    prior_payments, month_payments = _split_payments(db, student_id, month)
    prior_adjustments, month_adjustments = ledger.adjustment_totals(db, student_id, month)
    carry = compute_carry(
        prior_payments,
        month_payments,
        _prior_charges(db, student_id, month),
        total_amount,
        prior_adjustments=prior_adjustments,
        month_adjustments=month_adjustments,
    )

    billable = aggregate.billable_sessions
    return TuitionResult(
        student_id=student_id,
        month=month,
        base_amount=base_amount,
        total_discount=total_discount,
        total_amount=total_amount,
        session_count=len(billable),
        excused_loss=aggregate.excused_loss,
        balance=carry.carry_out_debt - carry.carry_out_credit,
        payment_status=determine_payment_status(
            carry.carry_out_credit, carry.carry_out_debt, total_amount, month_payments
        ),
        discounts=[
            DiscountLineRead(
                name=line.name,
                type=line.type,
                value=line.value,
                amount=line.amount,
                is_sibling_winner=line.is_sibling_winner,
            )
            for line in discounts.lines
        ],
        session_details=[
            SessionDetail(date=s.date, rate=s.rate, status=s.status, class_id=s.class_id, class_name=s.class_name)
            for s in billable
        ],
        payments=PaymentsSummary(
            cumulative_paid_amount=prior_payments + month_payments,
            month_payments=month_payments,
            prior_payments=prior_payments,
        ),
        carry=CarrySummary(
            status=carry.status,
            carry_in_credit=carry.carry_in_credit,
            carry_in_debt=carry.carry_in_debt,
            carry_out_credit=carry.carry_out_credit,
            carry_out_debt=carry.carry_out_debt,
            message=carry.message,
        ),
        sibling_state=SiblingStateRead(**discounts.sibling_state) if discounts.sibling_state else None,
    )


def _write_invoice(db: Session, student_id: int, month: str, actor_id: int | None = None) -> tuple[Invoice, TuitionResult]:
    """Flush the invoice snapshot and its ledger posting without committing."""
    result = calculate_tuition(db, student_id, month)

    account = ledger.get_account(db, student_id, lock=True)
    posted = ledger.posted_invoice_amount(db, account.id, month) if account else 0
    delta = result.total_amount - posted
    if delta:
        account = account or ledger.get_or_create_account(db, student_id)
        ledger.post_entry(
            db,
            account,
            month=month,
            kind="invoice",
            debit=max(delta, 0),
            credit=max(-delta, 0),
            memo=f"Tuition {month}" if posted == 0 else f"Tuition {month} adjustment",
            created_by=actor_id,
        )

    status = determine_invoice_status(result.total_amount, result.payments.month_payments, result.carry.carry_out_debt)
    ledger_balance = ledger.account_balance(db, student_id, up_to_month=month)
    expected_balance = result.carry.carry_out_debt - result.carry.carry_out_credit
    if ledger_balance != expected_balance:
        logger.warning(
            "Ledger balance %s does not match carry %s for student %s month %s",
            ledger_balance,
            expected_balance,
            student_id,
            month,
        )
        status = "needs_review"

    invoice = upsert_snapshot(
        db,
        Invoice,
        {
            "student_id": student_id,
            "month": month,
            "status": status,
            "base_amount": result.base_amount,
            "discount_amount": result.total_discount,
            "total_amount": result.total_amount,
            "paid_amount": result.payments.month_payments,
            "recorded_payment": result.payments.cumulative_paid_amount,
            "carry_in_credit": result.carry.carry_in_credit,
            "carry_in_debt": result.carry.carry_in_debt,
            "carry_out_credit": result.carry.carry_out_credit,
            "carry_out_debt": result.carry.carry_out_debt,
            "updated_at": utc_now(),
        },
        ["student_id", "month"],
    )
    return invoice, result


def generate_invoice(db: Session, student_id: int, month: str, actor_id: int | None = None) -> tuple[Invoice, TuitionResult]:
    try:
        invoice, result = _write_invoice(db, student_id, month, actor_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(invoice)
    logger.info("Generated invoice for student %s month %s: total %s", student_id, month, result.total_amount)
    return invoice, result


def recalculate_tuition(
    db: Session, student_id: int, month: str, actor_id: int | None, reason: str | None = None
) -> TuitionResult:
    """Manual, audited recalculation of one student's month."""
    validate_month(month)
    before = db.query(Invoice).filter(Invoice.student_id == student_id, Invoice.month == month).first()
    before_total = before.total_amount if before else None
    try:
        invoice, result = _write_invoice(db, student_id, month, actor_id)
        record_audit(
            db,
            "manual_tuition_recalc",
            "invoice",
            invoice.id,
            actor_id,
            {
                "student_id": student_id,
                "month": month,
                "reason": reason,
                "before_total": before_total,
                "after_total": result.total_amount,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result


def students_billable_in_month(db: Session, month: str) -> list[int]:
    rows = (
        db.query(Enrollment.student_id)
        .join(Student, Student.id == Enrollment.student_id)
        .filter(
            Student.is_active.is_(True),
            Enrollment.start_date <= month_end(month),
            or_(Enrollment.end_date.is_(None), Enrollment.end_date >= month_start(month)),
        )
        .distinct()
        .all()
    )
    return sorted(student_id for (student_id,) in rows)


def generate_tuition_for_month(
    db: Session, month: str, actor_id: int | None = None, student_ids: list[int] | None = None
) -> dict:
    """Generate invoices for every billable student, collecting per-student errors.

    One student's failure never stops the batch; the result always reports how
    many students were processed.
    """
    validate_month(month)
    if student_ids is None:
        student_ids = students_billable_in_month(db, month)
    result = {"month": month, "total": len(student_ids), "processed": 0, "errors": [], "needs_review": 0}
    logger.info("Generating tuition for %s students in %s", len(student_ids), month)

    def _record(student_id: int, status: str | None, error: Exception | None) -> None:
        if error is not None:
            logger.error("Tuition generation failed for student %s in %s: %s", student_id, month, error)
            result["errors"].append(f"Student {student_id}: {error}")
            return
        result["processed"] += 1
        if status == "needs_review":
            result["needs_review"] += 1

    workers = max(1, int(get_settings().bulk_max_workers))
    if workers == 1:
        for student_id in student_ids:
            try:
                invoice, _ = generate_invoice(db, student_id, month, actor_id)
            except Exception as exc:
                _record(student_id, None, exc)
            else:
                _record(student_id, invoice.status, None)
    else:
        factory = sessionmaker(bind=db.get_bind(), autocommit=False, autoflush=False)

        def _run(student_id: int):
            worker_db = factory()
            try:
                invoice, _ = generate_invoice(worker_db, student_id, month, actor_id)
                return student_id, invoice.status, None
            except Exception as exc:
                return student_id, None, exc
            finally:
                worker_db.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for student_id, status, error in pool.map(_run, student_ids):
                _record(student_id, status, error)

    try:
        record_audit(
            db,
            "generate_tuition",
            "invoice",
            month,
            actor_id,
            {"total": result["total"], "processed": result["processed"], "errors": len(result["errors"])},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result


def override_invoice_status(
    db: Session, student_id: int, month: str, status: str, reason: str, actor_id: int | None
) -> Invoice:
    validate_month(month)
    if status not in INVOICE_STATUSES:
        raise ValidationFailed(f"Invalid invoice status '{status}'")
    if not reason or not reason.strip():
        raise ValidationFailed("A reason is required to override an invoice status")
    invoice = db.query(Invoice).filter(Invoice.student_id == student_id, Invoice.month == month).first()
    if invoice is None:
        raise NotFound(f"No invoice for student {student_id} in {month}")

    previous = invoice.status
    try:
        invoice.status = status
        record_audit(
            db,
            "invoice_status_override",
            "invoice",
            invoice.id,
            actor_id,
            {"from_status": previous, "to_status": status, "reason": reason, "student_id": student_id, "month": month},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(invoice)
    return invoice


def confirm_invoices(
    db: Session, invoice_ids: list[int], confirmation_status: str, notes: str | None, actor_id: int | None
) -> list[Invoice]:
    if confirmation_status not in CONFIRMATION_STATUSES[1:]:
        raise ValidationFailed(f"Invalid confirmation status '{confirmation_status}'")
    invoices = db.query(Invoice).filter(Invoice.id.in_(invoice_ids)).order_by(Invoice.id.asc()).all()
    missing = set(invoice_ids) - {invoice.id for invoice in invoices}
    if missing:
        raise NotFound(f"Invoices not found: {sorted(missing)}")

    now = datetime.now(timezone.utc)
    try:
        for invoice in invoices:
            invoice.confirmation_status = confirmation_status
            invoice.confirmed_at = now
            invoice.confirmed_by = actor_id
            invoice.confirmation_notes = notes
            record_audit(
                db,
                "confirm_tuition",
                "invoice",
                invoice.id,
                actor_id,
                {"status": confirmation_status, "notes": notes, "month": invoice.month, "student_id": invoice.student_id},
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return invoices
