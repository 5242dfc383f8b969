"""Bill settlement: audited corrections to a student's balance for one month.

The ledger is never edited. A settlement discount forgives debt with an
``adjustment`` credit, and a voluntary contribution turns a credit balance
into club revenue with an ``adjustment`` debit. Unapplied cash leaves the
credit on the account for future months and only records the decision.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from tutorclub.app.core.errors import NotFound, ValidationFailed
from tutorclub.app.core.time import validate_month
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.settlement import Settlement
from tutorclub.app.models.student import Student
from tutorclub.app.schemas.settlement import SettlementRequest
from tutorclub.app.services import ledger
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.payments import refresh_invoice

logger = logging.getLogger(__name__)


def settle_bill(db: Session, payload: SettlementRequest, actor_id: int | None) -> Settlement:
    month = validate_month(payload.month)
    if payload.settlement_type == "voluntary_contribution" and not payload.consent_given:
        raise ValidationFailed("Consent required for voluntary contribution")
    if db.get(Student, payload.student_id) is None:
        raise NotFound(f"Student {payload.student_id} not found")
    invoice = db.query(Invoice.id).filter(Invoice.student_id == payload.student_id, Invoice.month == month).first()
    if invoice is None:
        raise NotFound(f"No invoice for student {payload.student_id} in {month}")

    try:
        account = ledger.get_or_create_account(db, payload.student_id)
        balance = ledger.account_balance(db, payload.student_id, up_to_month=month)
        tx_id = str(uuid.uuid4())

        if payload.settlement_type == "discount":
            if balance <= 0:
                raise ValidationFailed("No debit balance to discount")
            applied = min(payload.amount, balance)
            ledger.post_entry(
                db,
                account,
                month=month,
                kind="adjustment",
                credit=applied,
                memo=f"Settlement discount: {payload.reason}",
                created_by=actor_id,
                tx_id=tx_id,
            )
            after = balance - applied
        elif payload.settlement_type == "voluntary_contribution":
            if balance >= 0:
                raise ValidationFailed("No credit balance to convert")
            applied = min(payload.amount, -balance)
            ledger.post_entry(
                db,
                account,
                month=month,
                kind="adjustment",
                debit=applied,
                memo=f"Voluntary contribution (consent: {payload.approver_name or 'yes'}): {payload.reason}",
                created_by=actor_id,
                tx_id=tx_id,
            )
            after = balance + applied
        else:
            if balance >= 0:
                raise ValidationFailed("No credit balance to record as unapplied")
            applied = min(payload.amount, -balance)
            tx_id = None
            after = balance

        settlement = Settlement(
            student_id=payload.student_id,
            month=month,
            settlement_type=payload.settlement_type,
            amount=payload.amount,
            applied_amount=applied,
            reason=payload.reason,
            consent_given=payload.consent_given,
            approver_name=payload.approver_name,
            tx_id=tx_id,
            before_balance=balance,
            after_balance=after,
            created_by=actor_id,
        )
        db.add(settlement)
        db.flush()
        record_audit(
            db,
            "settle_bill",
            "settlement",
            settlement.id,
            actor_id,
            {
                "student_id": payload.student_id,
                "month": month,
                "settlement_type": payload.settlement_type,
                "applied_amount": applied,
                "before_balance": balance,
                "after_balance": after,
                "reason": payload.reason,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(settlement)
    logger.info(
        "Settled %s of %s for student %s month %s (%s)",
        applied,
        payload.settlement_type,
        payload.student_id,
        month,
        tx_id,
    )

    refresh_invoice(db, payload.student_id, month, actor_id)
    return settlement
