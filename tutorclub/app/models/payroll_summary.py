from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from tutorclub.app.core.time import utc_now
from tutorclub.app.db.base_class import Base


class PayrollSummary(Base):
    __tablename__ = "payroll_summaries"
    __table_args__ = (UniqueConstraint("teacher_id", "month", name="uq_payroll_teacher_month"),)

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)
    total_hours = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(BigInteger, nullable=False, default=0)
    sessions_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
