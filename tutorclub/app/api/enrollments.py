"""Enrollment endpoints: creation and rate overrides."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.user import User
from tutorclub.app.schemas.enrollment import EnrollmentCreate, EnrollmentRateResult, EnrollmentRateUpdate, EnrollmentRead
from tutorclub.app.services.enrollments import create_enrollment, update_enrollment_rate

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post("/", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: EnrollmentCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return create_enrollment(
        db,
        payload.student_id,
        payload.class_id,
        payload.start_date,
        end_date=payload.end_date,
        rate_override_vnd=payload.rate_override_vnd,
        actor_id=current_admin.id,
    )


@router.post("/{enrollment_id}/rate", response_model=EnrollmentRateResult)
def update_rate(
    enrollment_id: int,
    payload: EnrollmentRateUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    result = update_enrollment_rate(
        db,
        enrollment_id,
        payload.rate_override_vnd,
        payload.reason,
        payload.student_id,
        payload.month,
        actor_id=current_admin.id,
    )
    return EnrollmentRateResult(
        success=result["success"],
        enrollment=EnrollmentRead.model_validate(result["enrollment"]),
        recalculated=result["recalculated"],
        tuition=result["tuition"],
    )
