"""Enrollment schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field

from tutorclub.app.schemas.base import CamelModel
from tutorclub.app.schemas.tuition import MONTH_REGEX, TuitionResult


class EnrollmentCreate(CamelModel):
    student_id: int
    class_id: int
    start_date: date
    end_date: Optional[date] = None
    rate_override_vnd: Optional[int] = Field(default=None, gt=0)


class EnrollmentRead(CamelModel):
    id: int
    student_id: int
    class_id: int
    start_date: date
    end_date: Optional[date] = None
    rate_override_vnd: Optional[int] = None
    discount_type: Optional[str] = None
    discount_value: Optional[int] = None
    discount_cadence: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[int] = None


class EnrollmentRateUpdate(CamelModel):
    rate_override_vnd: Optional[int] = Field(default=None, gt=0)
    reason: Optional[str] = None
    student_id: int
    month: str = Field(pattern=MONTH_REGEX)


class EnrollmentRateResult(CamelModel):
    success: bool
    enrollment: EnrollmentRead
    recalculated: bool
    tuition: Optional[TuitionResult] = None
