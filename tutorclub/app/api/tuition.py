"""Tuition calculation and invoice generation endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorclub.app.core.security import ensure_student_access, get_current_admin, get_current_user
from tutorclub.app.db.session import get_db
from tutorclub.app.models.user import User
from tutorclub.app.schemas.tuition import (
    BulkTuitionRequest,
    BulkTuitionResult,
    TuitionRecalcRequest,
    TuitionRequest,
    TuitionResult,
)
from tutorclub.app.services import tuition as tuition_service

router = APIRouter(prefix="/tuition", tags=["tuition"])


@router.post("/calculate", response_model=TuitionResult)
def calculate_tuition(
    payload: TuitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_student_access(db, current_user, payload.student_id)
    return tuition_service.calculate_tuition(db, payload.student_id, payload.month)


@router.post("/generate", response_model=BulkTuitionResult)
def generate_tuition(
    payload: BulkTuitionRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return tuition_service.generate_tuition_for_month(db, payload.month, actor_id=current_admin.id)


@router.post("/recalculate", response_model=TuitionResult)
def recalculate_tuition(
    payload: TuitionRecalcRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return tuition_service.recalculate_tuition(
        db, payload.student_id, payload.month, actor_id=current_admin.id, reason=payload.reason
    )
