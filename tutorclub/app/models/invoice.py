"""Invoice model: the persisted snapshot of one tuition calculation."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base

INVOICE_STATUSES = ("draft", "issued", "partial", "paid", "needs_review")
CONFIRMATION_STATUSES = ("pending", "confirmed", "adjusted")


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("student_id", "month", name="uq_invoice_student_month"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)

    status = Column(String(20), default="draft", nullable=False)
    base_amount = Column(BigInteger, default=0, nullable=False)
    discount_amount = Column(BigInteger, default=0, nullable=False)
    total_amount = Column(BigInteger, default=0, nullable=False)
    paid_amount = Column(BigInteger, default=0, nullable=False)
    recorded_payment = Column(BigInteger, default=0, nullable=False)
    carry_in_credit = Column(BigInteger, default=0, nullable=False)
    carry_in_debt = Column(BigInteger, default=0, nullable=False)
    carry_out_credit = Column(BigInteger, default=0, nullable=False)
    carry_out_debt = Column(BigInteger, default=0, nullable=False)

    confirmation_status = Column(String(20), default="pending", nullable=False)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmation_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    student = relationship("Student", back_populates="invoices")
