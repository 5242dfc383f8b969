"""Ledger statement and integrity endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_current_admin
from tutorclub.app.db.session import get_db
from tutorclub.app.models.student import Student
from tutorclub.app.models.user import User
from tutorclub.app.schemas.ledger import IntegrityReport, LedgerEntryRead, LedgerStatement
from tutorclub.app.services import ledger
from tutorclub.app.services.integrity import scan_ledger_integrity

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/integrity", response_model=IntegrityReport)
def integrity_scan(db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return IntegrityReport(findings=scan_ledger_integrity(db))


@router.get("/{student_id}", response_model=LedgerStatement)
def student_ledger(student_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    if db.get(Student, student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")
    entries = ledger.list_entries(db, student_id)
    return LedgerStatement(
        student_id=student_id,
        balance=ledger.account_balance(db, student_id),
        entries=[LedgerEntryRead.model_validate(entry) for entry in entries],
    )
