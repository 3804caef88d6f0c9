import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from checkin.config import config
from checkin.database import atomic, dialect_insert
from checkin.models.session import DailySession
from checkin.models.student import Student
from checkin.services.roster_service import get_active_student, get_student, student_to_dict
from checkin.services.task_service import get_task, register_assignment, start_task_for_clock_in
from checkin.utils.date_utils import meeting_date_for, serialize_date, serialize_datetime, utc_now
from checkin.utils.error_utils import handle_validation_error

logger = logging.getLogger(__name__)

NOT_CLOCKED_IN = "not_clocked_in"
CLOCKED_IN = "clocked_in"
CLOCKED_OUT = "clocked_out"

NEED_KINDS = ("help", "task")
HISTORY_LIMIT = 30


def session_status(session: Optional[DailySession]) -> str:
    """Classifies a session as not_clocked_in, clocked_in or clocked_out."""
    if session is None or session.clock_in_at is None:
        return NOT_CLOCKED_IN
    if session.clock_out_at is None:
        return CLOCKED_IN
    return CLOCKED_OUT


def session_to_dict(session: DailySession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "student_id": session.student_id,
        "meeting_date": serialize_date(session.meeting_date),
        "clock_in_at": serialize_datetime(session.clock_in_at),
        "clock_out_at": serialize_datetime(session.clock_out_at),
        "subteam": session.subteam,
        "working_on": session.working_on,
        "need_help": session.need_help,
        "need_help_at": serialize_datetime(session.need_help_at),
        "need_task": session.need_task,
        "need_task_at": serialize_datetime(session.need_task_at),
        "task_id": session.task_id,
        "created_at": serialize_datetime(session.created_at),
        "updated_at": serialize_datetime(session.updated_at),
    }


def session_payload(session: Optional[DailySession]) -> Dict[str, Any]:
    """The `{session, status}` body every student endpoint answers with."""
    return {
        "session": session_to_dict(session) if session else None,
        "status": session_status(session),
    }


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def auto_close_stale_sessions(db: Session, now: Optional[datetime] = None) -> int:
    """
    Clocks out sessions left open longer than the auto-close window.

    A forgotten clock-out gets clock_out_at = clock_in_at + window. Runs inline
    ahead of every read that reports live status; there is no background job.
    Does not commit.

    Args:
        db: database session
        now: reference instant (None means now)

    Returns:
        int: number of sessions closed
    """
    now = now or utc_now()
    window = timedelta(hours=config.attendance.auto_close_hours)

    stale = db.query(DailySession).filter(
        DailySession.clock_in_at.isnot(None),
        DailySession.clock_out_at.is_(None),
        DailySession.clock_in_at < now - window
    ).all()

    for session in stale:
        session.clock_out_at = session.clock_in_at + window
        session.updated_at = now
        logger.info(f"Auto clock-out: student {session.student_id} on {session.meeting_date}")

    if stale:
        db.flush()
    return len(stale)


def upsert_session(db: Session, student_id: int, meeting_date: date, now: datetime) -> DailySession:
    """
    Returns the session for (student, meeting date), creating it if absent.

    Uses INSERT ... ON CONFLICT DO UPDATE on the (student_id, meeting_date)
    unique constraint, so racing requests end up on the same row with the
    last writer's updated_at. Does not commit.
    """
    stmt = dialect_insert(db, DailySession).values(
        student_id=student_id,
        meeting_date=meeting_date,
        need_help=False,
        need_task=False,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["student_id", "meeting_date"],
        set_={"updated_at": now},
    )
    db.execute(stmt)

    return db.query(DailySession).populate_existing().filter(
        DailySession.student_id == student_id,
        DailySession.meeting_date == meeting_date
    ).one()


def get_or_create_today_session(db: Session, student_id: int, now: Optional[datetime] = None) -> DailySession:
    """Today's session in the team timezone, created on first use. Does not commit."""
    now = now or utc_now()
    return upsert_session(db, student_id, meeting_date_for(now), now)


def clock_in(
        db: Session,
        student_id: Optional[int],
        subteam: Optional[str] = None,
        working_on: Optional[str] = None,
        task_id: Optional[int] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Clocks a student in for today.

    The first clock-in time of an open session is kept; clocking in again
    after a clock-out re-opens the same row. Non-blank subteam, working-on and
    task values overwrite the day's snapshot. With a task, the student is
    assigned to it (idempotently) and a todo task moves to in_progress.
    Everything happens in one transaction.

    Args:
        db: database session
        student_id: student clocking in
        subteam: subteam for the day
        working_on: free-text activity
        task_id: task the student is picking up
        now: clock-in instant (None means now)

    Returns:
        Dict: {"session": ..., "status": ...}
    """
    now = now or utc_now()

    with atomic(db):
        student = get_active_student(db, student_id)
        if task_id:
            get_task(db, task_id)

        auto_close_stale_sessions(db, now)
        session = get_or_create_today_session(db, student.id, now)

        if session.clock_in_at is None:
            session.clock_in_at = now
        session.clock_out_at = None

        if _non_blank(subteam):
            session.subteam = _non_blank(subteam)
        if _non_blank(working_on):
            session.working_on = _non_blank(working_on)
        if task_id:
            session.task_id = task_id
            register_assignment(db, task_id, student.id, now)
            start_task_for_clock_in(db, task_id, now)
        session.updated_at = now
        payload = session_payload(session)

    logger.info(f"Clock-in: student {student_id} on {payload['session']['meeting_date']}")
    return payload


def clock_out(db: Session, student_id: Optional[int], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Stamps clock_out_at = now on today's session (creating the row if needed)."""
    now = now or utc_now()

    with atomic(db):
        student = get_active_student(db, student_id)
        auto_close_stale_sessions(db, now)
        session = get_or_create_today_session(db, student.id, now)
        session.clock_out_at = now
        session.updated_at = now
        payload = session_payload(session)

    logger.info(f"Clock-out: student {student_id} on {payload['session']['meeting_date']}")
    return payload


def update_working_state(
        db: Session,
        student_id: Optional[int],
        subteam: Optional[str] = None,
        working_on: Optional[str] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Partial update of today's subteam / working-on; blank values keep the old ones."""
    now = now or utc_now()

    with atomic(db):
        student = get_active_student(db, student_id)
        auto_close_stale_sessions(db, now)
        session = get_or_create_today_session(db, student.id, now)
        if _non_blank(subteam):
            session.subteam = _non_blank(subteam)
        if _non_blank(working_on):
            session.working_on = _non_blank(working_on)
        session.updated_at = now
        payload = session_payload(session)

    return payload


def toggle_need(
        db: Session,
        student_id: Optional[int],
        kind: Optional[str],
        value: bool,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Sets the need-help or need-task flag.

    Args:
        db: database session
        student_id: student raising or clearing the flag
        kind: "help" or "task"
        value: new flag value; its timestamp is now when True, cleared when False
        now: reference instant (None means now)

    Returns:
        Dict: {"session": ..., "status": ...}
    """
    now = now or utc_now()
    if not student_id:
        raise handle_validation_error("Missing studentId")
    if kind not in NEED_KINDS:
        raise handle_validation_error("Invalid type")

    value = bool(value)
    with atomic(db):
        student = get_active_student(db, student_id)
        auto_close_stale_sessions(db, now)
        session = get_or_create_today_session(db, student.id, now)
        setattr(session, f"need_{kind}", value)
        setattr(session, f"need_{kind}_at", now if value else None)
        session.updated_at = now
        payload = session_payload(session)

    logger.info(f"Need {kind}={value}: student {student_id}")
    return payload


def get_today_session(db: Session, student_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Today's session for the student UI, or status not_clocked_in when there is none."""
    now = now or utc_now()

    with atomic(db):
        auto_close_stale_sessions(db, now)
        student = get_active_student(db, student_id)
        session = db.query(DailySession).filter(
            DailySession.student_id == student.id,
            DailySession.meeting_date == meeting_date_for(now)
        ).first()
        payload = session_payload(session)

    return payload


def get_status_board(
        db: Session,
        meeting_date: Optional[date] = None,
        now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    One row per active student for a meeting date (default today), name-sorted.
    Students without a session still get a row with empty session fields.
    """
    now = now or utc_now()
    meeting_date = meeting_date or meeting_date_for(now)

    with atomic(db):
        auto_close_stale_sessions(db, now)
        rows = db.query(Student, DailySession).outerjoin(
            DailySession,
            (DailySession.student_id == Student.id) & (DailySession.meeting_date == meeting_date)
        ).filter(
            Student.is_active == True
        ).order_by(Student.full_name.asc()).all()

        # serialized before commit expires the loaded rows
        results = []
        for student, session in rows:
            results.append({
                "student_id": student.id,
                "full_name": student.full_name,
                "subteam": (session.subteam if session else None) or student.subteam,
                "meeting_date": serialize_date(session.meeting_date) if session else None,
                "clock_in_at": serialize_datetime(session.clock_in_at) if session else None,
                "clock_out_at": serialize_datetime(session.clock_out_at) if session else None,
                "working_on": session.working_on if session else None,
                "need_help": session.need_help if session else None,
                "need_task": session.need_task if session else None,
                "need_help_at": serialize_datetime(session.need_help_at) if session else None,
                "need_task_at": serialize_datetime(session.need_task_at) if session else None,
                "task_id": session.task_id if session else None,
                "updated_at": serialize_datetime(session.updated_at) if session else None,
                "status": session_status(session),
            })
    return results


def get_student_history(db: Session, student_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Student card for mentors: the student and the latest sessions, newest first."""
    now = now or utc_now()

    with atomic(db):
        auto_close_stale_sessions(db, now)
        student = get_student(db, student_id)
        sessions = db.query(DailySession).filter(
            DailySession.student_id == student.id
        ).order_by(DailySession.meeting_date.desc()).limit(HISTORY_LIMIT).all()

        history = []
        for session in sessions:
            item = session_to_dict(session)
            item["status"] = session_status(session)
            history.append(item)
        card = {"student": student_to_dict(student), "sessions": history}

    return card
