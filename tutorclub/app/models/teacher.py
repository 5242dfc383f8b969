from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from tutorclub.app.db.base_class import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    hourly_rate_vnd = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
