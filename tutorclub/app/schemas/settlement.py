"""Bill settlement schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field

from tutorclub.app.schemas.base import CamelModel
from tutorclub.app.schemas.tuition import MONTH_REGEX


class SettlementRequest(CamelModel):
    student_id: int
    month: str = Field(pattern=MONTH_REGEX)
    settlement_type: Literal["discount", "voluntary_contribution", "unapplied_cash"]
    amount: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=500)
    consent_given: bool = False
    approver_name: Optional[str] = None


class SettlementRead(CamelModel):
    id: int
    student_id: int
    month: str
    settlement_type: str
    amount: int
    applied_amount: int
    reason: str
    consent_given: bool
    approver_name: Optional[str] = None
    tx_id: Optional[str] = None
    before_balance: int
    after_balance: int
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
