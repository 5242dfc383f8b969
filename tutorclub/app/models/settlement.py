"""Bill settlements: audited corrections posted to the ledger as adjustments."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String

from tutorclub.app.db.base_class import Base

SETTLEMENT_TYPES = ("discount", "voluntary_contribution", "unapplied_cash")


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)
    settlement_type = Column(String(30), nullable=False)
    amount = Column(BigInteger, nullable=False)
    applied_amount = Column(BigInteger, nullable=False)
    reason = Column(String(500), nullable=False)
    consent_given = Column(Boolean, nullable=False, default=False)
    approver_name = Column(String, nullable=True)
    tx_id = Column(String(36), nullable=True)
    before_balance = Column(BigInteger, nullable=False)
    after_balance = Column(BigInteger, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
