"""Class session model."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship

from tutorclub.app.db.base_class import Base
from tutorclub.app.core.time import utc_now

SESSION_STATUSES = ("Scheduled", "Held", "Canceled", "Holiday")


class Session(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    status = Column(String(20), nullable=False, default="Scheduled")
    rate_override_vnd = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    school_class = relationship("SchoolClass", back_populates="sessions")
    attendance = relationship("Attendance", back_populates="session", cascade="all, delete-orphan")
