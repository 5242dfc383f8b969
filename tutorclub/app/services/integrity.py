"""Consistency checks between invoices, payments and the ledger.

Findings describe a repair task, not a failed request: they are logged and
returned, never raised.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.ledger import LedgerAccount, LedgerEntry
from tutorclub.app.models.payment import Payment
from tutorclub.app.services import ledger
from tutorclub.app.services.tuition import calculate_tuition

logger = logging.getLogger(__name__)


def check_invoice_parity(db: Session, student_id: int, month: str) -> list[str]:
    """Compare the persisted invoice with a fresh calculation for the same month."""
    invoice = db.query(Invoice).filter(Invoice.student_id == student_id, Invoice.month == month).first()
    if invoice is None:
        logger.info("Parity check skipped, no invoice for student %s month %s", student_id, month)
        return []

    result = calculate_tuition(db, student_id, month)
    pairs = [
        ("base", invoice.base_amount, result.base_amount),
        ("discount", invoice.discount_amount, result.total_discount),
        ("total", invoice.total_amount, result.total_amount),
        ("paid", invoice.recorded_payment, result.payments.cumulative_paid_amount),
        ("carry_out_debt", invoice.carry_out_debt, result.carry.carry_out_debt),
        ("carry_out_credit", invoice.carry_out_credit, result.carry.carry_out_credit),
    ]
    diffs = [f"{name}: invoice={stored}, calculated={fresh}" for name, stored, fresh in pairs if stored != fresh]
    if diffs:
        logger.warning("Parity check failed for student %s month %s: %s", student_id, month, "; ".join(diffs))
    return diffs


def scan_ledger_integrity(db: Session) -> list[dict]:
    findings = []

    charged = dict(db.query(Invoice.student_id, func.sum(Invoice.total_amount)).group_by(Invoice.student_id).all())
    paid = dict(db.query(Payment.student_id, func.sum(Payment.amount)).group_by(Payment.student_id).all())
    adjusted = dict(
        db.query(LedgerAccount.student_id, func.sum(LedgerEntry.debit - LedgerEntry.credit))
        .join(LedgerEntry, LedgerEntry.account_id == LedgerAccount.id)
        .filter(LedgerEntry.kind == "adjustment")
        .group_by(LedgerAccount.student_id)
        .all()
    )
    student_ids = set(charged) | set(paid) | {sid for (sid,) in db.query(LedgerAccount.student_id).all()}

    for student_id in sorted(student_ids):
        expected = (
            int(charged.get(student_id) or 0)
            + int(adjusted.get(student_id) or 0)
            - int(paid.get(student_id) or 0)
        )
        actual = ledger.account_balance(db, student_id)
        if expected != actual:
            findings.append(
                {"kind": "balance_mismatch", "student_id": student_id, "expected": expected, "ledger": actual}
            )

    orphaned = (
        db.query(Payment.id, Payment.student_id)
        .outerjoin(LedgerEntry, LedgerEntry.payment_id == Payment.id)
        .filter(LedgerEntry.id.is_(None))
        .all()
    )
    for payment_id, student_id in orphaned:
        findings.append({"kind": "payment_without_ledger_entry", "student_id": student_id, "payment_id": payment_id})

    for finding in findings:
        logger.warning("Ledger integrity finding: %s", finding)
    return findings
