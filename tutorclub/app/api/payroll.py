"""Teacher payroll endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.user import User
from tutorclub.app.schemas.payroll import PayrollRequest
from tutorclub.app.services.payroll import calculate_payroll

router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.post("/calculate")
def calculate(
    payload: PayrollRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return calculate_payroll(db, payload.month, teacher_id=payload.teacher_id, actor_id=current_admin.id)
