"""Payroll request schema."""

from typing import Optional

from pydantic import Field

from tutorclub.app.schemas.base import CamelModel
from tutorclub.app.schemas.tuition import MONTH_REGEX


class PayrollRequest(CamelModel):
    month: str = Field(pattern=MONTH_REGEX)
    teacher_id: Optional[int] = None
