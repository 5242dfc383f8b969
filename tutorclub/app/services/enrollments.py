"""Enrollment maintenance: creation and audited rate overrides."""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import BillingError, NotFound, ValidationFailed
from tutorclub.app.core.time import validate_month
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.student import Student
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.tuition import generate_invoice

logger = logging.getLogger(__name__)


def create_enrollment(
    db: Session,
    student_id: int,
    class_id: int,
    start_date: date,
    end_date: date | None = None,
    rate_override_vnd: int | None = None,
    actor_id: int | None = None,
) -> Enrollment:
    if db.get(Student, student_id) is None:
        raise NotFound(f"Student {student_id} not found")
    if db.get(SchoolClass, class_id) is None:
        raise NotFound(f"Class {class_id} not found")
    if end_date is not None and end_date < start_date:
        raise ValidationFailed("Enrollment end date is before its start date")
    if rate_override_vnd is not None and rate_override_vnd <= 0:
        raise ValidationFailed("Rate override must be positive")

    if end_date is None:
        active = (
            db.query(Enrollment)
            .filter(
                Enrollment.student_id == student_id,
                Enrollment.class_id == class_id,
                Enrollment.end_date.is_(None),
            )
            .first()
        )
        if active is not None:
            raise ValidationFailed(f"Student {student_id} already has an active enrollment in class {class_id}")

    enrollment = Enrollment(
        student_id=student_id,
        class_id=class_id,
        start_date=start_date,
        end_date=end_date,
        rate_override_vnd=rate_override_vnd,
        updated_by=actor_id,
    )
    try:
        db.add(enrollment)
        db.flush()
        record_audit(
            db,
            "create_enrollment",
            "enrollment",
            enrollment.id,
            actor_id,
            {"student_id": student_id, "class_id": class_id, "start_date": start_date.isoformat()},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(enrollment)
    return enrollment


def update_enrollment_rate(
    db: Session,
    enrollment_id: int,
    rate_override_vnd: int | None,
    reason: str | None,
    student_id: int,
    month: str,
    actor_id: int | None,
) -> dict:
    """Change an enrollment's rate override, audit it, then recalculate the month."""
    validate_month(month)
    if rate_override_vnd is not None and rate_override_vnd <= 0:
        raise ValidationFailed("Rate override must be positive")
    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise NotFound(f"Enrollment {enrollment_id} not found")
    if enrollment.student_id != student_id:
        raise ValidationFailed(f"Enrollment {enrollment_id} does not belong to student {student_id}")

    previous = enrollment.rate_override_vnd
    try:
        enrollment.rate_override_vnd = rate_override_vnd
        enrollment.updated_by = actor_id
        record_audit(
            db,
            "update_enrollment_rate",
            "enrollment",
            enrollment.id,
            actor_id,
            {
                "from_rate_override_vnd": previous,
                "rate_override_vnd": rate_override_vnd,
                "reason": reason,
                "student_id": student_id,
                "class_id": enrollment.class_id,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(enrollment)
    logger.info("Updated enrollment %s rate override to %s by user %s", enrollment.id, rate_override_vnd, actor_id)

    tuition = None
    try:
        _, tuition = generate_invoice(db, student_id, month, actor_id)
    except (BillingError, SQLAlchemyError) as exc:
        logger.error("Recalculation after rate change failed for student %s month %s: %s", student_id, month, exc)

    return {"success": True, "enrollment": enrollment, "recalculated": tuition is not None, "tuition": tuition}
