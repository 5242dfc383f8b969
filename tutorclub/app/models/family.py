"""Family model grouping siblings for the sibling discount."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from tutorclub.app.core.time import utc_now
from tutorclub.app.db.base_class import Base


class Family(Base):
    __tablename__ = "families"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    primary_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sibling_percent_override = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    students = relationship("Student", back_populates="family")
