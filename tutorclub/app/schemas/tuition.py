"""Tuition projection schemas."""

import datetime as dt
from typing import List, Optional

from pydantic import Field

from tutorclub.app.schemas.base import CamelModel

MONTH_REGEX = r"^\d{4}-(0[1-9]|1[0-2])$"


class DiscountLineRead(CamelModel):
    name: str
    type: str
    value: int
    amount: int
    is_sibling_winner: bool = False


class SessionDetail(CamelModel):
    date: dt.date
    rate: int
    status: str
    class_id: int
    class_name: str


class PaymentsSummary(CamelModel):
    cumulative_paid_amount: int
    month_payments: int
    prior_payments: int


class CarrySummary(CamelModel):
    status: str
    carry_in_credit: int
    carry_in_debt: int
    carry_out_credit: int
    carry_out_debt: int
    message: str


class SiblingStateRead(CamelModel):
    status: str
    percent: int
    is_winner: Optional[bool] = None
    reason: Optional[str] = None


class TuitionResult(CamelModel):
    student_id: int
    month: str
    base_amount: int
    total_discount: int
    total_amount: int
    session_count: int
    excused_loss: int
    balance: int
    payment_status: str
    discounts: List[DiscountLineRead]
    session_details: List[SessionDetail]
    payments: PaymentsSummary
    carry: CarrySummary
    sibling_state: Optional[SiblingStateRead] = None


class TuitionRequest(CamelModel):
    student_id: int
    month: str = Field(pattern=MONTH_REGEX)


class TuitionRecalcRequest(TuitionRequest):
    reason: Optional[str] = None


class BulkTuitionRequest(CamelModel):
    month: str = Field(pattern=MONTH_REGEX)


class BulkTuitionResult(CamelModel):
    month: str
    total: int
    processed: int
    errors: List[str]
    needs_review: int
