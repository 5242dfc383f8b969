"""Class (course group) model. Named SchoolClass to stay clear of the keyword."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    default_teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=True)
    session_rate_vnd = Column(Integer, nullable=False, default=0)
    # [{"weekday": 0, "start_time": "17:00", "end_time": "18:30"}, ...]
    schedule_template = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    sessions = relationship("Session", back_populates="school_class")
    enrollments = relationship("Enrollment", back_populates="school_class")
