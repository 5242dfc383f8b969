"""Payment model. Rows are immutable once written."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text

from tutorclub.app.db.base_class import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    method = Column(String(50), nullable=False)
    payer_name = Column(String, nullable=True)
    memo = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    family_payment_id = Column(Integer, ForeignKey("family_payments.id"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
