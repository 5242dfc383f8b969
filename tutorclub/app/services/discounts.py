"""Discount evaluation for one student and month.

Discounts apply in a fixed order: enrollment-level discounts, then
assigned discounts (family scope before student scope), then referral
bonuses, then the sibling discount. Percentages are taken of the amount the
discount targets; every amount is capped by what is left of the base, so the
total never exceeds it.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tutorclub.app.core.time import month_end, month_of, month_start
from tutorclub.app.models.discount import DiscountAssignment, DiscountDefinition, ReferralBonus
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.sibling_discount import SiblingDiscountState
from tutorclub.app.models.student import Student
from tutorclub.app.services.aggregation import MonthAggregate
from tutorclub.app.services.billing import percent_of

logger = logging.getLogger(__name__)

DISCOUNT_CADENCES = ("monthly", "once", "yearly")
SIBLING_DISCOUNT_NAME = "Sibling Discount"
REFERRAL_BONUS_NAME = "Referral Bonus"


@dataclass(frozen=True)
class DiscountLine:
    name: str
    type: str
    value: int
    amount: int
    is_sibling_winner: bool = False


@dataclass
class DiscountResult:
    lines: list[DiscountLine] = field(default_factory=list)
    sibling_state: dict | None = None

    @property
    def total(self) -> int:
        return sum(line.amount for line in self.lines)


@dataclass(frozen=True)
class _Candidate:
    source: str
    name: str
    type: str | None
    value: int | None
    basis: int


def discount_amount(discount_type: str | None, value, basis: int) -> int:
    """Raw discount on ``basis``; raises ValueError for a malformed discount."""
    if value is None or value < 0:
        raise ValueError(f"invalid value {value!r}")
    if discount_type == "percent":
        if value > 100:
            raise ValueError(f"percent {value} exceeds 100")
        return percent_of(basis, value)
    if discount_type == "amount":
        return int(value)
    raise ValueError(f"unknown discount type {discount_type!r}")


def _enrollment_candidates(db: Session, student_id: int, month: str, aggregate: MonthAggregate) -> list[_Candidate]:
    enrollments = (
        db.query(Enrollment)
        .filter(
            Enrollment.student_id == student_id,
            Enrollment.discount_type.isnot(None),
            Enrollment.start_date <= month_end(month),
            or_(Enrollment.end_date.is_(None), Enrollment.end_date >= month_start(month)),
        )
        .order_by(Enrollment.id.asc())
        .all()
    )
    candidates = []
    for enrollment in enrollments:
        cadence = enrollment.discount_cadence or "monthly"
        start_month = month_of(enrollment.start_date)
        if cadence == "once" and start_month != month:
            continue
        if cadence == "yearly" and start_month[5:] != month[5:]:
            continue
        if cadence not in DISCOUNT_CADENCES:
            logger.warning("Skipping enrollment %s discount with cadence %r", enrollment.id, cadence)
            continue
        class_total = aggregate.per_class.get(enrollment.class_id)
        candidates.append(
            _Candidate(
                source=f"enrollment {enrollment.id}",
                name="Enrollment Discount",
                type=enrollment.discount_type,
                value=enrollment.discount_value,
                basis=class_total.amount if class_total else 0,
            )
        )
    return candidates


def _assignment_candidates(db: Session, student: Student, month: str, base: int) -> list[_Candidate]:
    scope = [DiscountAssignment.student_id == student.id]
    if student.family_id is not None:
        scope.append(DiscountAssignment.family_id == student.family_id)

    rows = (
        db.query(DiscountAssignment, DiscountDefinition)
        .join(DiscountDefinition, DiscountAssignment.discount_id == DiscountDefinition.id)
        .filter(
            or_(*scope),
            DiscountDefinition.is_active.is_(True),
            DiscountAssignment.effective_from <= month_end(month),
            or_(DiscountAssignment.effective_to.is_(None), DiscountAssignment.effective_to >= month_start(month)),
        )
        .all()
    )
    # Family-wide overrides first, then the student's own assignments.
    rows.sort(key=lambda row: (row[0].family_id is None, row[0].id))
    return [
        _Candidate(
            source=f"assignment {assignment.id}",
            name=definition.name,
            type=definition.type,
            value=definition.value,
            basis=base,
        )
        for assignment, definition in rows
    ]


def _referral_candidates(db: Session, student_id: int, month: str, base: int) -> list[_Candidate]:
    bonuses = (
        db.query(ReferralBonus)
        .filter(
            ReferralBonus.student_id == student_id,
            ReferralBonus.effective_from <= month_end(month),
            or_(ReferralBonus.effective_to.is_(None), ReferralBonus.effective_to >= month_start(month)),
        )
        .order_by(ReferralBonus.id.asc())
        .all()
    )
    return [
        _Candidate(
            source=f"referral bonus {bonus.id}",
            name=REFERRAL_BONUS_NAME,
            type=bonus.type,
            value=bonus.value,
            basis=base,
        )
        for bonus in bonuses
    ]


def _sibling_line(
    db: Session, student: Student, month: str, aggregate: MonthAggregate
) -> tuple[dict | None, _Candidate | None]:
    if student.family_id is None:
        return None, None
    state = (
        db.query(SiblingDiscountState)
        .filter(SiblingDiscountState.family_id == student.family_id, SiblingDiscountState.month == month)
        .first()
    )
    if state is None:
        return None, None

    is_winner = state.winner_student_id == student.id
    sibling_state = {
        "status": state.status,
        "percent": state.sibling_percent,
        "isWinner": is_winner,
        "reason": state.reason,
    }
    if state.status != "assigned" or not is_winner:
        return sibling_state, None

    # Only the winner's selected class is discounted, for the whole month.
    class_total = aggregate.per_class.get(state.winner_class_id) if state.winner_class_id else None
    if class_total is None:
        logger.warning(
            "Sibling winner %s has no billed sessions in selected class %s for %s; recompute the family",
            student.id,
            state.winner_class_id,
            month,
        )
    candidate = _Candidate(
        source=f"sibling state {state.id}",
        name=SIBLING_DISCOUNT_NAME,
        type="percent",
        value=state.sibling_percent,
        basis=class_total.amount if class_total else 0,
    )
    return sibling_state, candidate


def evaluate_discounts(db: Session, student: Student, month: str, aggregate: MonthAggregate) -> DiscountResult:
    """Ordered discounts for the month. Same inputs always give the same output."""
    base = aggregate.base_amount
    result = DiscountResult()
    candidates = _enrollment_candidates(db, student.id, month, aggregate)
    candidates += _assignment_candidates(db, student, month, base)
    candidates += _referral_candidates(db, student.id, month, base)
    result.sibling_state, sibling = _sibling_line(db, student, month, aggregate)
    if sibling is not None:
        candidates.append(sibling)

    remaining = base
    for candidate in candidates:
        try:
            amount = discount_amount(candidate.type, candidate.value, candidate.basis)
        except ValueError as exc:
            logger.warning("Skipping %s for student %s in %s: %s", candidate.source, student.id, month, exc)
            continue
        amount = min(amount, remaining)
        if amount <= 0:
            continue
        remaining -= amount
        result.lines.append(
            DiscountLine(
                name=candidate.name,
                type=candidate.type,
                value=int(candidate.value),
                amount=amount,
                is_sibling_winner=candidate is sibling,
            )
        )
    return result
