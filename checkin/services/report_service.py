import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from checkin.database import atomic
from checkin.models.session import DailySession
from checkin.models.student import Student
from checkin.services.session_service import auto_close_stale_sessions
from checkin.utils.date_utils import hours_between, serialize_date, utc_now

logger = logging.getLogger(__name__)


def round_hours(hours: float) -> float:
    """Round to 2 decimals, halves away from zero."""
    return float(Decimal(str(hours)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def attendance_report(
        db: Session,
        start: date,
        end: date,
        now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Attendance totals per active student over an inclusive date range.

    A day counts when its session has a clock-in. A session's duration is
    clock_out_at - clock_in_at; a session never clocked out contributes zero
    hours. Students without sessions in range are listed with zero totals.

    Args:
        db: database session
        start: first meeting date (inclusive)
        end: last meeting date (inclusive)
        now: reference instant for the auto-close sweep (None means now)

    Returns:
        List[Dict]: rows with student_id, full_name, subteam,
            days_clocked_in, hours_total, last_day; sorted by name
    """
    now = now or utc_now()

    # plain column rows, so nothing is reloaded after the commit
    with atomic(db):
        auto_close_stale_sessions(db, now)

        students = db.query(
            Student.id,
            Student.full_name,
            Student.subteam
        ).filter(
            Student.is_active == True
        ).order_by(Student.full_name.asc()).all()

        sessions = db.query(
            DailySession.student_id,
            DailySession.meeting_date,
            DailySession.clock_in_at,
            DailySession.clock_out_at
        ).join(
            Student, Student.id == DailySession.student_id
        ).filter(
            Student.is_active == True,
            DailySession.meeting_date >= start,
            DailySession.meeting_date <= end,
            DailySession.clock_in_at.isnot(None)
        ).all()

    days: Dict[int, set] = {}
    hours: Dict[int, float] = {}
    for session in sessions:
        days.setdefault(session.student_id, set()).add(session.meeting_date)
        finished_at = session.clock_out_at or session.clock_in_at
        hours[session.student_id] = hours.get(session.student_id, 0.0) + hours_between(session.clock_in_at, finished_at)

    rows = []
    for student in students:
        attended = days.get(student.id, set())
        rows.append({
            "student_id": student.id,
            "full_name": student.full_name,
            "subteam": student.subteam,
            "days_clocked_in": len(attended),
            "hours_total": round_hours(hours.get(student.id, 0.0)),
            "last_day": serialize_date(max(attended)) if attended else None,
        })

    logger.info(f"Attendance report {start.isoformat()}..{end.isoformat()}: {len(rows)} students, {len(sessions)} sessions")
    return rows
