from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from checkin.database import Base
from checkin.utils.date_utils import utc_now


class DailySession(Base):
    """Attendance record for one student on one meeting date."""
    __tablename__ = "daily_sessions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    meeting_date = Column(Date, nullable=False, index=True)  # local calendar day, see date_utils
    clock_in_at = Column(DateTime, nullable=True)
    clock_out_at = Column(DateTime, nullable=True)
    subteam = Column(String(100), nullable=True)  # snapshot for the day
    working_on = Column(Text, nullable=True)
    need_help = Column(Boolean, nullable=False, default=False)
    need_help_at = Column(DateTime, nullable=True)
    need_task = Column(Boolean, nullable=False, default=False)
    need_task_at = Column(DateTime, nullable=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    # one session per student per meeting date
    __table_args__ = (
        UniqueConstraint("student_id", "meeting_date", name="uix_student_meeting_date"),
    )

    def __repr__(self):
        return f"<DailySession(student_id={self.student_id}, date={self.meeting_date}, in={self.clock_in_at}, out={self.clock_out_at})>"
