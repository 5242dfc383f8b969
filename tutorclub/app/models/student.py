"""Student model."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base
from tutorclub.app.core.time import utc_now


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    family_id = Column(Integer, ForeignKey("families.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    linked_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    family = relationship("Family", back_populates="students")
    enrollments = relationship("Enrollment", back_populates="student", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="student", cascade="all, delete-orphan")
