"""Payment schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from tutorclub.app.schemas.base import CamelModel


class PaymentRecord(CamelModel):
    student_id: int
    amount: int = Field(gt=0)
    method: str = Field(min_length=1, max_length=50)
    occurred_at: datetime
    payer_name: Optional[str] = None
    memo: Optional[str] = None


class PaymentRecorded(CamelModel):
    success: bool
    payment_id: int


class PaymentRead(CamelModel):
    id: int
    student_id: int
    amount: int
    method: str
    payer_name: Optional[str] = None
    memo: Optional[str] = None
    occurred_at: datetime
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ManualAllocation(CamelModel):
    student_id: int
    amount: int = Field(ge=0)


class FamilyPaymentRecord(CamelModel):
    family_id: int
    student_ids: List[int] = Field(min_length=1)
    amount: int = Field(gt=0, le=100_000_000)
    method: str = Field(min_length=1, max_length=50)
    occurred_at: datetime
    payer_name: Optional[str] = None
    memo: Optional[str] = Field(default=None, max_length=500)
    allocation_mode: Literal["oldest-first", "pro-rata", "manual"] = "oldest-first"
    manual_allocations: Optional[List[ManualAllocation]] = None
    leftover_handling: Literal["unapplied_cash", "voluntary_contribution"] = "unapplied_cash"
    consent_given: bool = False


class AllocationRead(CamelModel):
    student_id: int
    amount: int
    payment_id: int


class FamilyPaymentRecorded(CamelModel):
    success: bool
    family_payment_id: int
    allocations: List[AllocationRead]
    contribution_amount: int
