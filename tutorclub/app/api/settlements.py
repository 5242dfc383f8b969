"""Bill settlement endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.settlement import Settlement
from tutorclub.app.models.user import User
from tutorclub.app.schemas.settlement import SettlementRead, SettlementRequest
from tutorclub.app.services.settlements import settle_bill

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.post("/", response_model=SettlementRead, status_code=status.HTTP_201_CREATED)
def create_settlement(
    payload: SettlementRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return settle_bill(db, payload, actor_id=current_admin.id)


@router.get("/", response_model=List[SettlementRead])
def list_settlements(
    student_id: int | None = None,
    month: str | None = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    query = db.query(Settlement)
    if student_id is not None:
        query = query.filter(Settlement.student_id == student_id)
    if month is not None:
        query = query.filter(Settlement.month == month)
    return query.order_by(Settlement.created_at.desc(), Settlement.id.desc()).all()
