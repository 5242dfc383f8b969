"""Invoice snapshot endpoints: lookup, listing, status override and confirmation."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from tutorclub.app.core.security import ensure_student_access, get_current_admin, get_current_user
from tutorclub.app.db.session import get_db
from tutorclub.app.models.invoice import Invoice
from tutorclub.app.models.user import User
from tutorclub.app.schemas.invoice import (
    InvoiceConfirmRequest,
    InvoiceConfirmResponse,
    InvoiceRead,
    InvoiceStatusOverride,
)
from tutorclub.app.schemas.tuition import MONTH_REGEX
from tutorclub.app.services import tuition as tuition_service

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/", response_model=List[InvoiceRead])
def list_invoices(
    month: str | None = None,
    student_id: int | None = None,
    status: str | None = None,
    confirmation_status: str | None = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "month",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    query = db.query(Invoice)
    if month is not None:
        query = query.filter(Invoice.month == month)
    if student_id is not None:
        query = query.filter(Invoice.student_id == student_id)
    if status is not None:
        query = query.filter(Invoice.status == status)
    if confirmation_status is not None:
        query = query.filter(Invoice.confirmation_status == confirmation_status)

    supported_sort_fields = {
        "month": Invoice.month,
        "status": Invoice.status,
        "total_amount": Invoice.total_amount,
        "carry_out_debt": Invoice.carry_out_debt,
        "updated_at": Invoice.updated_at,
    }
    if sort_by not in supported_sort_fields:
        raise HTTPException(status_code=400, detail="Invalid sort_by value")
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")
    sort_column = supported_sort_fields[sort_by]
    if sort_order_normalized == "asc":
        order_by_clause = [sort_column.asc(), Invoice.id.asc()]
    else:
        order_by_clause = [sort_column.desc(), Invoice.id.desc()]

    return query.order_by(*order_by_clause).offset(skip).limit(limit).all()


@router.post("/status-override", response_model=InvoiceRead)
def override_status(
    payload: InvoiceStatusOverride,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return tuition_service.override_invoice_status(
        db, payload.student_id, payload.month, payload.status, payload.reason, actor_id=current_admin.id
    )


@router.post("/confirm", response_model=InvoiceConfirmResponse)
def confirm_invoices(
    payload: InvoiceConfirmRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    invoices = tuition_service.confirm_invoices(
        db, payload.invoice_ids, payload.adjusted_status, payload.notes, actor_id=current_admin.id
    )
    return InvoiceConfirmResponse(
        success=True,
        confirmed_count=len(invoices),
        invoices=[InvoiceRead.model_validate(invoice) for invoice in invoices],
    )


@router.get("/{student_id}/{month}", response_model=InvoiceRead)
def get_invoice(
    student_id: int,
    month: str = Path(pattern=MONTH_REGEX),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_student_access(db, current_user, student_id)
    invoice = db.query(Invoice).filter(Invoice.student_id == student_id, Invoice.month == month).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice
