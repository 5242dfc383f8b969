"""Sibling discount jobs."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.user import User
from tutorclub.app.schemas.sibling import (
    SiblingComputeRequest,
    SiblingComputeResult,
    SiblingWatchRequest,
    SiblingWatchResult,
)
from tutorclub.app.services.sibling import compute_sibling_discounts, watch_sibling_threshold

router = APIRouter(prefix="/discounts", tags=["discounts"])


@router.post("/sibling/compute", response_model=SiblingComputeResult)
def compute_sibling(
    payload: SiblingComputeRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return compute_sibling_discounts(db, payload.month, actor_id=current_admin.id)


@router.post("/sibling/watch", response_model=SiblingWatchResult)
def watch_sibling(
    payload: SiblingWatchRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return watch_sibling_threshold(db, payload.month, actor_id=current_admin.id)
