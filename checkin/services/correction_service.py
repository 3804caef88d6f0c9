import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from checkin.config import config
from checkin.database import atomic
from checkin.models.correction import CORRECTION_STATUSES, AttendanceCorrection
from checkin.models.student import Student
from checkin.services.roster_service import get_active_student
from checkin.services.session_service import upsert_session
from checkin.utils.date_utils import (
    local_to_utc,
    parse_date,
    parse_time,
    serialize_date,
    serialize_datetime,
    utc_now,
)
from checkin.utils.error_utils import handle_not_found_error, handle_validation_error

logger = logging.getLogger(__name__)

PENDING = "pending"
DECISIONS = ("approved", "denied")


def correction_to_dict(correction: AttendanceCorrection, full_name: Optional[str] = None) -> Dict[str, Any]:
    result = {
        "id": correction.id,
        "student_id": correction.student_id,
        "meeting_date": serialize_date(correction.meeting_date),
        "requested_clock_in": serialize_datetime(correction.requested_clock_in),
        "requested_clock_out": serialize_datetime(correction.requested_clock_out),
        "reason": correction.reason,
        "status": correction.status,
        "created_at": serialize_datetime(correction.created_at),
        "decided_at": serialize_datetime(correction.decided_at),
    }
    if full_name is not None:
        result["full_name"] = full_name
    return result


def request_correction(
        db: Session,
        student_id: Optional[int],
        meeting_date: Optional[str],
        clock_in_time: Optional[str],
        clock_out_time: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Files a pending correction for one meeting date.

    Args:
        db: database session
        student_id: requesting student
        meeting_date: YYYY-MM-DD
        clock_in_time: HH:MM local time
        clock_out_time: HH:MM local time (optional)
        reason: why the record is wrong
        now: creation instant (None means now)

    Returns:
        Dict: the stored correction
    """
    now = now or utc_now()
    if not meeting_date:
        raise handle_validation_error("Missing meetingDate")
    if not clock_in_time:
        raise handle_validation_error("Missing clockInTime")
    reason = (reason or "").strip()
    if not reason:
        raise handle_validation_error("Missing reason")

    day = parse_date(meeting_date, "meetingDate")
    requested_in = local_to_utc(day, parse_time(clock_in_time, "clockInTime"))
    requested_out = None
    if clock_out_time:
        requested_out = local_to_utc(day, parse_time(clock_out_time, "clockOutTime"))
        if requested_out < requested_in:
            raise handle_validation_error("clockOutTime must not be earlier than clockInTime")

    with atomic(db):
        student = get_active_student(db, student_id)
        correction = AttendanceCorrection(
            student_id=student.id,
            meeting_date=day,
            requested_clock_in=requested_in,
            requested_clock_out=requested_out,
            reason=reason,
            status=PENDING,
            created_at=now,
        )
        db.add(correction)
        db.flush()
        result = correction_to_dict(correction, student.full_name)

    logger.info(f"Correction {result['id']} requested by student {result['student_id']} for {day.isoformat()}")
    return result


def list_corrections(db: Session, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Corrections newest first, optionally filtered by status."""
    query = db.query(AttendanceCorrection, Student.full_name).join(
        Student, Student.id == AttendanceCorrection.student_id
    )
    if status:
        if status not in CORRECTION_STATUSES:
            raise handle_validation_error(f"Invalid status '{status}'")
        query = query.filter(AttendanceCorrection.status == status)

    rows = query.order_by(AttendanceCorrection.created_at.desc(), AttendanceCorrection.id.desc()).all()
    return [correction_to_dict(correction, full_name) for correction, full_name in rows]


def decide_correction(
        db: Session,
        correction_id: int,
        status: Optional[str],
        apply_to_session: Optional[bool] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Approves or denies a pending correction. Decisions are final.

    Whether an approval rewrites the student's session is the
    attendance.apply_approved_corrections setting; when it does, the session
    for that meeting date gets the requested clock-in/out in the same
    transaction as the decision.

    Args:
        db: database session
        correction_id: correction to decide
        status: "approved" or "denied"
        apply_to_session: override for the write-back setting
        now: decision instant (None means now)

    Returns:
        Dict: the decided correction
    """
    now = now or utc_now()
    if status not in DECISIONS:
        raise handle_validation_error("Invalid status. Use approved or denied")
    if apply_to_session is None:
        apply_to_session = config.attendance.apply_approved_corrections

    with atomic(db):
        # pending -> decided in one statement; a concurrent decision makes this match nothing
        decided = db.execute(
            update(AttendanceCorrection)
            .where(
                AttendanceCorrection.id == correction_id,
                AttendanceCorrection.status == PENDING
            )
            .values(status=status, decided_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount

        correction = db.query(AttendanceCorrection).populate_existing().filter(
            AttendanceCorrection.id == correction_id
        ).first()
        if not correction:
            raise handle_not_found_error("Correction", correction_id)
        if not decided:
            raise handle_validation_error(f"Correction already {correction.status}")

        if status == "approved" and apply_to_session:
            session = upsert_session(db, correction.student_id, correction.meeting_date, now)
            session.clock_in_at = correction.requested_clock_in
            session.clock_out_at = correction.requested_clock_out
            session.updated_at = now
            logger.info(f"Correction {correction.id} applied to session {session.id}")

        result = correction_to_dict(correction)

    logger.info(f"Correction {correction_id} {status}")
    return result
