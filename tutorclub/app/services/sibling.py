"""Family-wide sibling discount: eligibility, winner selection and state.

A family qualifies when at least two active students have positive projected
tuition in the month. Each student counts with their highest-tuition single
class; the student with the lowest such class wins, ties broken by a stable
hash of (student, month). The state row per (family, month) is overwritten
on every run, so re-running is always safe.
"""

import hashlib
import logging

from sqlalchemy.orm import Session

from tutorclub.app.core.settings import get_settings
from tutorclub.app.core.time import current_month, utc_now, validate_month
from tutorclub.app.db.upsert import upsert_snapshot
from tutorclub.app.models.family import Family
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.sibling_discount import SiblingDiscountState
from tutorclub.app.models.student import Student
from tutorclub.app.services.aggregation import ClassTotal, project_month
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.billing import format_vnd
from tutorclub.app.services.tuition import generate_invoice

logger = logging.getLogger(__name__)


def tie_hash(student_id: int, month: str) -> int:
    digest = hashlib.sha256(f"{student_id}:{month}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def highest_class(per_class: dict[int, ClassTotal]) -> ClassTotal | None:
    if not per_class:
        return None
    return max(per_class.values(), key=lambda total: (total.amount, -total.class_id))


def sibling_percent(family: Family) -> int:
    if family.sibling_percent_override is not None:
        return family.sibling_percent_override
    return get_settings().default_sibling_percent


def _get_state(db: Session, family_id: int, month: str) -> SiblingDiscountState | None:
    return (
        db.query(SiblingDiscountState)
        .filter(SiblingDiscountState.family_id == family_id, SiblingDiscountState.month == month)
        .first()
    )


def compute_family(db: Session, family: Family, month: str) -> dict:
    """Recompute and upsert one family's state for the month (flush only)."""
    percent = sibling_percent(family)
    students = (
        db.query(Student)
        .filter(Student.family_id == family.id, Student.is_active.is_(True))
        .order_by(Student.id.asc())
        .all()
    )

    contributions = []
    for student in students:
        best = highest_class(project_month(db, student.id, month))
        if best is not None and best.amount > 0:
            contributions.append((student, best))

    previous = _get_state(db, family.id, month)
    previous_status = previous.status if previous else None

    if len(contributions) < 2:
        reason = f"Only {len(contributions)} student(s) with positive tuition, need >=2"
        upsert_snapshot(
            db,
            SiblingDiscountState,
            {
                "family_id": family.id,
                "month": month,
                "status": "pending",
                "winner_student_id": None,
                "winner_class_id": None,
                "sibling_percent": percent,
                "projected_base_snapshot": None,
                "reason": reason,
                "computed_at": utc_now(),
            },
            ["family_id", "month"],
        )
        return {"family_id": family.id, "student_id": None, "status": "pending", "reason": reason}

    contributions.sort(key=lambda item: (item[1].amount, tie_hash(item[0].id, month), item[0].id))
    winner, winner_class = contributions[0]
    reason = f"Winner: lowest highest-class tuition ({format_vnd(winner_class.amount)}) in {winner_class.class_name}"
    upsert_snapshot(
        db,
        SiblingDiscountState,
        {
            "family_id": family.id,
            "month": month,
            "status": "assigned",
            "winner_student_id": winner.id,
            "winner_class_id": winner_class.class_id,
            "sibling_percent": percent,
            "projected_base_snapshot": winner_class.amount,
            "reason": reason,
            "computed_at": utc_now(),
        },
        ["family_id", "month"],
    )
    logger.info("Family %s sibling discount for %s: student %s class %s", family.id, month, winner.id, winner_class.class_id)
    return {
        "family_id": family.id,
        "student_id": winner.id,
        "status": "assigned",
        "winner_class_id": winner_class.class_id,
        "winner_class_name": winner_class.class_name,
        "percent": percent,
        "reason": reason,
        "retroactive": previous_status == "pending",
    }


def compute_sibling_discounts(db: Session, month: str, actor_id: int | None = None) -> dict:
    validate_month(month)
    families = db.query(Family).filter(Family.is_active.is_(True)).order_by(Family.id.asc()).all()
    logger.info("Computing sibling discounts for %s families in %s", len(families), month)

    results, errors = [], []
    for family in families:
        try:
            results.append(compute_family(db, family, month))
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Sibling discount failed for family %s in %s: %s", family.id, month, exc)
            errors.append(f"Family {family.id}: {exc}")

    try:
        record_audit(
            db,
            "compute_sibling_discounts",
            "sibling_discount_state",
            month,
            actor_id,
            {"processed": len(results), "errors": len(errors)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"month": month, "processed": len(results), "results": results, "errors": errors}


def watch_sibling_threshold(db: Session, month: str | None = None, actor_id: int | None = None) -> dict:
    """Re-check pending families; newly qualifying ones get the discount for the whole month.

    When the winner already has an invoice for the month it is regenerated, so
    the retroactive credit lands in the ledger. A family that fails is rolled
    back and reported in ``errors``; the rest of the batch carries on.
    """
    month = validate_month(month or current_month())
    pending = (
        db.query(SiblingDiscountState)
        .filter(SiblingDiscountState.month == month, SiblingDiscountState.status == "pending")
        .order_by(SiblingDiscountState.family_id.asc())
        .all()
    )
    family_ids = [state.family_id for state in pending]

    assigned, errors = 0, []
    for family_id in family_ids:
        family = db.get(Family, family_id)
        if family is None or not family.is_active:
            continue
        try:
            result = compute_family(db, family, month)
            if result["status"] == "assigned":
                record_audit(
                    db,
                    "sibling_retro_credit",
                    "sibling_discount_state",
                    family.id,
                    actor_id,
                    {"month": month, "student_id": result["student_id"], "class_id": result["winner_class_id"]},
                )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Sibling threshold check failed for family %s in %s: %s", family_id, month, exc)
            errors.append(f"Family {family_id}: {exc}")
            continue
        if result["status"] != "assigned":
            continue

        assigned += 1
        has_invoice = (
            db.query(Invoice.id)
            .filter(Invoice.student_id == result["student_id"], Invoice.month == month)
            .first()
        )
        if not has_invoice:
            continue
        try:
            generate_invoice(db, result["student_id"], month, actor_id)
        except Exception as exc:
            # The state stays assigned; the next invoice run applies the credit.
            logger.error(
                "Retroactive sibling credit failed for student %s in %s: %s", result["student_id"], month, exc
            )
            errors.append(f"Family {family_id}: {exc}")

    logger.info("Assigned %s new sibling discounts for %s", assigned, month)
    return {"month": month, "checked": len(family_ids), "assigned": assigned, "errors": errors}
