from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text

from checkin.database import Base
from checkin.utils.date_utils import utc_now

CORRECTION_STATUSES = ("pending", "approved", "denied")


class AttendanceCorrection(Base):
    """Student-proposed clock-in/out fix. Decided once by a mentor, then immutable."""
    __tablename__ = "attendance_corrections"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    meeting_date = Column(Date, nullable=False)
    requested_clock_in = Column(DateTime, nullable=False)
    requested_clock_out = Column(DateTime, nullable=True)
    reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    decided_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AttendanceCorrection(id={self.id}, student_id={self.student_id}, status={self.status})>"
