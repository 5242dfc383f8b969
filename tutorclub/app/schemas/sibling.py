from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tutorclub.app.schemas.base import CamelModel
from tutorclub.app.schemas.tuition import MONTH_REGEX


class SiblingComputeRequest(CamelModel):
    month: str = Field(pattern=MONTH_REGEX)


class SiblingWatchRequest(CamelModel):
    month: Optional[str] = Field(default=None, pattern=MONTH_REGEX)


class SiblingFamilyResult(BaseModel):
    """Per-family outcome; keys stay snake_case like the job's log lines."""

    model_config = ConfigDict(from_attributes=True)

    family_id: int
    student_id: Optional[int] = None
    status: str
    reason: Optional[str] = None
    winner_class_id: Optional[int] = None
    winner_class_name: Optional[str] = None
    percent: Optional[int] = None
    retroactive: bool = False


class SiblingComputeResult(CamelModel):
    month: str
    processed: int
    results: List[SiblingFamilyResult]
    errors: List[str]


class SiblingWatchResult(CamelModel):
    month: str
    checked: int
    assigned: int
    errors: List[str] = []
