"""Named discounts, their assignment to students or families, and referral bonuses."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base


class DiscountDefinition(Base):
    __tablename__ = "discount_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String(20), nullable=False)
    value = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    assignments = relationship("DiscountAssignment", back_populates="definition")


class DiscountAssignment(Base):
    __tablename__ = "discount_assignments"

    id = Column(Integer, primary_key=True, index=True)
    discount_id = Column(Integer, ForeignKey("discount_definitions.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=True, index=True)
    family_id = Column(Integer, ForeignKey("families.id"), nullable=True, index=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)

    definition = relationship("DiscountDefinition", back_populates="assignments")


class ReferralBonus(Base):
    __tablename__ = "referral_bonuses"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    referred_student_id = Column(Integer, ForeignKey("students.id"), nullable=True)
    type = Column(String(20), nullable=False)
    value = Column(Integer, nullable=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
