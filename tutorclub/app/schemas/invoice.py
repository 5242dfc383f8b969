"""Invoice schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from tutorclub.app.schemas.base import CamelModel
from tutorclub.app.schemas.tuition import MONTH_REGEX


class InvoiceRead(CamelModel):
    id: int
    student_id: int
    month: str
    status: str
    base_amount: int
    discount_amount: int
    total_amount: int
    paid_amount: int
    recorded_payment: int
    carry_in_credit: int
    carry_in_debt: int
    carry_out_credit: int
    carry_out_debt: int
    confirmation_status: str
    confirmed_by: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    confirmation_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InvoiceStatusOverride(CamelModel):
    student_id: int
    month: str = Field(pattern=MONTH_REGEX)
    status: Literal["draft", "issued", "partial", "paid", "needs_review"]
    reason: str = Field(min_length=1)


class InvoiceConfirmRequest(CamelModel):
    invoice_ids: List[int] = Field(min_length=1)
    notes: Optional[str] = None
    adjusted_status: Literal["confirmed", "adjusted"] = "confirmed"


class InvoiceConfirmResponse(CamelModel):
    success: bool
    confirmed_count: int
    invoices: List[InvoiceRead]
