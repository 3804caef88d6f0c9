from sqlalchemy import Boolean, Column, DateTime, Integer, String

from checkin.database import Base
from checkin.utils.date_utils import utc_now


class Student(Base):
    """Roster entry. Deactivated rather than deleted so history survives."""
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), unique=True, nullable=False)
    subteam = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f"<Student(id={self.id}, full_name={self.full_name}, is_active={self.is_active})>"
