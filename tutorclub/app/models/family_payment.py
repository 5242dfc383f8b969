"""One payment made by a family and split across siblings."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base

ALLOCATION_MODES = ("oldest-first", "pro-rata", "manual")
LEFTOVER_HANDLING = ("unapplied_cash", "voluntary_contribution")


class FamilyPayment(Base):
    __tablename__ = "family_payments"

    id = Column(Integer, primary_key=True, index=True)
    family_id = Column(Integer, ForeignKey("families.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    method = Column(String(50), nullable=False)
    allocation_mode = Column(String(20), nullable=False)
    leftover_handling = Column(String(30), nullable=False, default="unapplied_cash")
    contribution_amount = Column(BigInteger, nullable=False, default=0)
    consent_given = Column(Boolean, nullable=False, default=False)
    memo = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    payments = relationship("Payment", order_by="Payment.id")
