"""Ledger store: one tuition account per student, append-only entries.

Balance is always ``sum(debit) - sum(credit)`` over the account's entries;
nothing keeps a running counter. Invoices post debits (or credits when a
recalculation lowers a month's total), payments post credits, and bill
settlements post adjustments.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import LedgerError
from tutorclub.app.core.time import utc_now
from tutorclub.app.models.ledger import TUITION_ACCOUNT, LedgerAccount, LedgerEntry

logger = logging.getLogger(__name__)

ENTRY_KINDS = ("payment", "invoice", "adjustment")


def get_account(db: Session, student_id: int, lock: bool = False) -> LedgerAccount | None:
    query = db.query(LedgerAccount).filter(
        LedgerAccount.student_id == student_id,
        LedgerAccount.code == TUITION_ACCOUNT,
    )
    if lock:
        # Serialises concurrent postings for one student where the store supports it.
        query = query.with_for_update()
    return query.first()


def get_or_create_account(db: Session, student_id: int) -> LedgerAccount:
    account = get_account(db, student_id, lock=True)
    if account is not None:
        return account
    try:
        account = LedgerAccount(student_id=student_id, code=TUITION_ACCOUNT)
        db.add(account)
        db.flush()
    except SQLAlchemyError as exc:
        raise LedgerError(f"Failed to create ledger account: {exc}") from exc
    logger.info("Created %s ledger account for student %s", TUITION_ACCOUNT, student_id)
    return account


def post_entry(
    db: Session,
    account: LedgerAccount,
    *,
    month: str,
    kind: str,
    debit: int = 0,
    credit: int = 0,
    memo: str | None = None,
    occurred_at: datetime | None = None,
    payment_id: int | None = None,
    created_by: int | None = None,
    tx_id: str | None = None,
) -> LedgerEntry:
    if kind not in ENTRY_KINDS:
        raise LedgerError(f"Unknown ledger entry kind '{kind}'")
    if debit < 0 or credit < 0 or (debit > 0) == (credit > 0):
        raise LedgerError("A ledger entry needs exactly one positive side")

    entry = LedgerEntry(
        tx_id=tx_id or str(uuid.uuid4()),
        account_id=account.id,
        debit=debit,
        credit=credit,
        month=month,
        kind=kind,
        memo=memo,
        occurred_at=occurred_at or utc_now(),
        payment_id=payment_id,
        created_by=created_by,
    )
    try:
        db.add(entry)
        db.flush()
    except SQLAlchemyError as exc:
        raise LedgerError(f"Failed to post ledger entries: {exc}") from exc
    return entry


def account_balance(db: Session, student_id: int, up_to_month: str | None = None) -> int:
    """Outstanding balance (positive = owed) folded over the student's entries."""
    query = (
        db.query(func.coalesce(func.sum(LedgerEntry.debit - LedgerEntry.credit), 0))
        .join(LedgerAccount, LedgerEntry.account_id == LedgerAccount.id)
        .filter(LedgerAccount.student_id == student_id, LedgerAccount.code == TUITION_ACCOUNT)
    )
    if up_to_month is not None:
        query = query.filter(LedgerEntry.month <= up_to_month)
    return int(query.scalar() or 0)


def posted_invoice_amount(db: Session, account_id: int, month: str) -> int:
    """Net amount already charged to the account for ``month`` by invoice postings."""
    value = (
        db.query(func.coalesce(func.sum(LedgerEntry.debit - LedgerEntry.credit), 0))
        .filter(
            LedgerEntry.account_id == account_id,
            LedgerEntry.month == month,
            LedgerEntry.kind == "invoice",
        )
        .scalar()
    )
    return int(value or 0)


def list_entries(db: Session, student_id: int) -> list[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .join(LedgerAccount, LedgerEntry.account_id == LedgerAccount.id)
        .filter(LedgerAccount.student_id == student_id)
        .order_by(LedgerEntry.occurred_at.asc(), LedgerEntry.id.asc())
        .all()
    )


def adjustment_totals(db: Session, student_id: int, month: str) -> tuple[int, int]:
    """Net adjustments (debit - credit) posted before ``month`` and within it."""
    rows = (
        db.query(LedgerEntry.month, func.sum(LedgerEntry.debit - LedgerEntry.credit))
        .join(LedgerAccount, LedgerEntry.account_id == LedgerAccount.id)
        .filter(
            LedgerAccount.student_id == student_id,
            LedgerAccount.code == TUITION_ACCOUNT,
            LedgerEntry.kind == "adjustment",
            LedgerEntry.month <= month,
        )
        .group_by(LedgerEntry.month)
        .all()
    )
    prior = sum(int(total or 0) for entry_month, total in rows if entry_month < month)
    current = sum(int(total or 0) for entry_month, total in rows if entry_month == month)
    return prior, current
