"""Payment recording (single student or split across a family) and listing endpoints."""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.payment import Payment
from tutorclub.app.models.user import User
from tutorclub.app.schemas.payment import (
    FamilyPaymentRecord,
    FamilyPaymentRecorded,
    PaymentRead,
    PaymentRecord,
    PaymentRecorded,
)
from tutorclub.app.services.family_payments import record_family_payment
from tutorclub.app.services.payments import record_payment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/record", response_model=PaymentRecorded, status_code=status.HTTP_201_CREATED)
def record(
    payload: PaymentRecord,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    payment = record_payment(db, payload, actor_id=current_admin.id)
    return PaymentRecorded(success=True, payment_id=payment.id)


@router.post("/family", response_model=FamilyPaymentRecorded, status_code=status.HTTP_201_CREATED)
def record_family(
    payload: FamilyPaymentRecord,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return record_family_payment(db, payload, actor_id=current_admin.id)


@router.get("/", response_model=List[PaymentRead])
def list_payments(
    student_id: int | None = None,
    method: str | None = None,
    min_amount: int | None = None,
    max_amount: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "occurred_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    query = db.query(Payment)
    if student_id is not None:
        query = query.filter(Payment.student_id == student_id)
    if method:
        query = query.filter(Payment.method == method)
    if min_amount is not None:
        query = query.filter(Payment.amount >= min_amount)
    if max_amount is not None:
        query = query.filter(Payment.amount <= max_amount)
    if from_date is not None:
        query = query.filter(Payment.occurred_at >= from_date)
    if to_date is not None:
        query = query.filter(Payment.occurred_at <= to_date)

    supported_sort_fields = {
        "occurred_at": Payment.occurred_at,
        "amount": Payment.amount,
        "id": Payment.id,
    }
    if sort_by not in supported_sort_fields:
        raise HTTPException(status_code=400, detail="Invalid sort_by field")
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")

    sort_column = supported_sort_fields[sort_by]
    if sort_order_normalized == "asc":
        query = query.order_by(sort_column.asc(), Payment.id.asc())
    else:
        query = query.order_by(sort_column.desc(), Payment.id.desc())

    return query.offset(skip).limit(limit).all()
