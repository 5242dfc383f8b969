from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from tutorclub.app.core.time import utc_now
from tutorclub.app.db.base_class import Base


class SiblingDiscountState(Base):
    __tablename__ = "sibling_discount_state"
    __table_args__ = (UniqueConstraint("family_id", "month", name="uq_sibling_state_family_month"),)

    id = Column(Integer, primary_key=True, index=True)
    family_id = Column(Integer, ForeignKey("families.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    winner_student_id = Column(Integer, ForeignKey("students.id"), nullable=True)
    winner_class_id = Column(Integer, ForeignKey("classes.id"), nullable=True)
    sibling_percent = Column(Integer, nullable=False, default=5)
    projected_base_snapshot = Column(Integer, nullable=True)
    reason = Column(String, nullable=True)
    computed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
