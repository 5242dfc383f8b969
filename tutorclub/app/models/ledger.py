"""Ledger accounts and append-only ledger entries."""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from tutorclub.app.core.time import utc_now
from tutorclub.app.db.base_class import Base

TUITION_ACCOUNT = "tuition"


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"
    __table_args__ = (UniqueConstraint("student_id", "code", name="uq_ledger_account_student_code"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    code = Column(String(20), nullable=False, default=TUITION_ACCOUNT)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    entries = relationship("LedgerEntry", back_populates="account", order_by="LedgerEntry.id")


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    tx_id = Column(String(36), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("ledger_accounts.id"), nullable=False, index=True)
    debit = Column(BigInteger, nullable=False, default=0)
    credit = Column(BigInteger, nullable=False, default=0)
    month = Column(String(7), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    memo = Column(String, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    account = relationship("LedgerAccount", back_populates="entries")
