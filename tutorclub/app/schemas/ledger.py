"""Ledger read schemas."""

from datetime import datetime
from typing import List, Optional

from tutorclub.app.schemas.base import CamelModel


class LedgerEntryRead(CamelModel):
    id: int
    tx_id: str
    debit: int
    credit: int
    month: str
    kind: str
    memo: Optional[str] = None
    payment_id: Optional[int] = None
    occurred_at: datetime
    created_by: Optional[int] = None


class LedgerStatement(CamelModel):
    student_id: int
    balance: int
    entries: List[LedgerEntryRead]


class IntegrityReport(CamelModel):
    findings: List[dict]
