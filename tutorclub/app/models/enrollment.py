"""Enrollment model: the billable window of a student in a class."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorclub.app.core.time import utc_now
from tutorclub.app.db.base_class import Base


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    rate_override_vnd = Column(Integer, nullable=True)
    discount_type = Column(String(20), nullable=True)
    discount_value = Column(Integer, nullable=True)
    discount_cadence = Column(String(20), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    student = relationship("Student", back_populates="enrollments")
    school_class = relationship("SchoolClass", back_populates="enrollments")

    def covers(self, day) -> bool:
        return self.start_date <= day and (self.end_date is None or day <= self.end_date)
