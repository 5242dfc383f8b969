"""Split one family payment across siblings.

Allocation modes:

* ``oldest-first``: waterfall over students ordered by their oldest month
  still in debt.
* ``pro-rata``: each student gets a share proportional to what they owe,
  never more than they owe.
* ``manual``: the caller names the amount per student.

Whatever is left over either stays as credit on the first selected student
(``unapplied_cash``) or, with the family's consent, is kept by the club as a
voluntary contribution. Each allocation is an ordinary payment row with its
own ledger credit; all of them commit together.
"""

import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import NotFound, ValidationFailed
from tutorclub.app.core.time import as_utc, month_of
from tutorclub.app.models.family import Family
from tutorclub.app.models.family_payment import FamilyPayment
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.student import Student
from tutorclub.app.schemas.payment import FamilyPaymentRecord
from tutorclub.app.services import ledger
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.billing import round_half_up
from tutorclub.app.services.payments import post_payment, refresh_invoice

logger = logging.getLogger(__name__)


def _oldest_open_month(db: Session, student_id: int) -> str:
    value = (
        db.query(func.min(Invoice.month))
        .filter(Invoice.student_id == student_id, Invoice.carry_out_debt > 0)
        .scalar()
    )
    return value or "9999-12"


def allocate(
    mode: str,
    amount: int,
    owed: dict[int, int],
    oldest: dict[int, str] | None = None,
    manual: list[tuple[int, int]] | None = None,
) -> list[tuple[int, int]]:
    """Return ``(student_id, amount)`` pairs; the sum never exceeds ``amount``."""
    allocations: list[tuple[int, int]] = []
    remaining = amount

    if mode == "manual":
        if not manual:
            raise ValidationFailed("Manual allocation needs at least one student amount")
        if sum(part for _, part in manual) > amount:
            raise ValidationFailed("Manual allocations exceed the payment amount")
        for student_id, part in manual:
            if student_id not in owed:
                raise ValidationFailed(f"Student {student_id} is not part of this payment")
            if part > 0:
                allocations.append((student_id, part))
        return allocations

    if mode == "pro-rata":
        total_owed = sum(value for value in owed.values() if value > 0)
        if total_owed == 0:
            return allocations
        for student_id, student_owed in owed.items():
            if remaining <= 0 or student_owed <= 0:
                continue
            share = round_half_up(Decimal(student_owed) * Decimal(amount) / Decimal(total_owed))
            part = min(share, remaining, student_owed)
            if part > 0:
                allocations.append((student_id, part))
                remaining -= part
        return allocations

    if mode == "oldest-first":
        oldest = oldest or {}
        order = sorted(owed, key=lambda sid: (oldest.get(sid, "9999-12"), sid))
        for student_id in order:
            if remaining <= 0:
                break
            part = min(owed[student_id], remaining)
            if part > 0:
                allocations.append((student_id, part))
                remaining -= part
        return allocations

    raise ValidationFailed(f"Unknown allocation mode '{mode}'")


def record_family_payment(db: Session, payload: FamilyPaymentRecord, actor_id: int | None) -> dict:
    family = db.get(Family, payload.family_id)
    if family is None:
        raise NotFound(f"Family {payload.family_id} not found")

    student_ids = list(dict.fromkeys(payload.student_ids))
    members = {
        student_id
        for (student_id,) in db.query(Student.id).filter(Student.id.in_(student_ids), Student.family_id == family.id)
    }
    outsiders = [student_id for student_id in student_ids if student_id not in members]
    if outsiders:
        raise ValidationFailed(f"Students {outsiders} do not belong to family {family.id}")

    owed = {student_id: max(ledger.account_balance(db, student_id), 0) for student_id in student_ids}
    oldest = {student_id: _oldest_open_month(db, student_id) for student_id in student_ids}
    manual = [(item.student_id, item.amount) for item in payload.manual_allocations or []]
    allocations = allocate(payload.allocation_mode, payload.amount, owed, oldest, manual)

    leftover = payload.amount - sum(part for _, part in allocations)
    contribution = 0
    if leftover > 0:
        if payload.leftover_handling == "voluntary_contribution":
            if not payload.consent_given:
                raise ValidationFailed("Consent required for voluntary contribution")
            contribution = leftover
        else:
            merged = dict(allocations)
            merged[student_ids[0]] = merged.get(student_ids[0], 0) + leftover
            allocations = list(merged.items())

    occurred_at = as_utc(payload.occurred_at)
    month = month_of(occurred_at)
    try:
        family_payment = FamilyPayment(
            family_id=family.id,
            amount=payload.amount,
            method=payload.method,
            allocation_mode=payload.allocation_mode,
            leftover_handling=payload.leftover_handling,
            contribution_amount=contribution,
            consent_given=payload.consent_given,
            memo=payload.memo or f"Family payment for {len(student_ids)} students",
            occurred_at=occurred_at,
            created_by=actor_id,
        )
        db.add(family_payment)
        db.flush()

        results = []
        for index, (student_id, part) in enumerate(allocations, start=1):
            payment, _ = post_payment(
                db,
                student_id,
                part,
                payload.method,
                occurred_at,
                actor_id,
                payer_name=payload.payer_name,
                memo=f"Family payment allocation ({index}/{len(allocations)})",
                family_payment_id=family_payment.id,
            )
            results.append({"student_id": student_id, "amount": part, "payment_id": payment.id})

        record_audit(
            db,
            "record_family_payment",
            "family_payment",
            family_payment.id,
            actor_id,
            {
                "family_id": family.id,
                "amount": payload.amount,
                "allocation_mode": payload.allocation_mode,
                "allocations": [[item["student_id"], item["amount"]] for item in results],
                "contribution_amount": contribution,
                "month": month,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Recorded family payment %s of %s for family %s across %s students",
        family_payment.id,
        payload.amount,
        family.id,
        len(results),
    )

    for item in results:
        refresh_invoice(db, item["student_id"], month, actor_id)
    return {
        "success": True,
        "family_payment_id": family_payment.id,
        "allocations": results,
        "contribution_amount": contribution,
    }
