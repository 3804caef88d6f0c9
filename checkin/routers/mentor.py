from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkin.database import get_db
from checkin.schemas.mentor import CorrectionDecisionRequest
from checkin.services import correction_service, report_service, session_service
from checkin.utils.auth_utils import Permission, require_permission
from checkin.utils.date_utils import parse_date
from checkin.utils.error_utils import handle_validation_error

router = APIRouter(tags=["mentor"])


@router.get("/mentor/status", dependencies=[Depends(require_permission(Permission.VIEW_DASHBOARD))])
def status_board(date: Optional[str] = None, db: Session = Depends(get_db)):
    """Live board: one row per active student for the date (default today)."""
    meeting_date = parse_date(date) if date else None
    return {"rows": session_service.get_status_board(db, meeting_date)}


@router.get("/mentor/student/{student_id}", dependencies=[Depends(require_permission(Permission.VIEW_DASHBOARD))])
def student_card(student_id: int, db: Session = Depends(get_db)):
    return session_service.get_student_history(db, student_id)


@router.get("/mentor/report", dependencies=[Depends(require_permission(Permission.VIEW_DASHBOARD))])
def attendance_report(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Attendance totals for an inclusive date range.

    - start: first date (YYYY-MM-DD)
    - end: last date (YYYY-MM-DD)
    """
    if not start or not end:
        raise handle_validation_error("Missing start/end (YYYY-MM-DD)")

    rows = report_service.attendance_report(db, parse_date(start, "start"), parse_date(end, "end"))
    return {"rows": rows}


@router.get("/mentor/corrections", dependencies=[Depends(require_permission(Permission.DECIDE_CORRECTIONS))])
def list_corrections(status: Optional[str] = None, db: Session = Depends(get_db)):
    return {"corrections": correction_service.list_corrections(db, status)}


@router.post(
    "/mentor/corrections/{correction_id}/decide",
    dependencies=[Depends(require_permission(Permission.DECIDE_CORRECTIONS))]
)
def decide_correction(correction_id: int, body: CorrectionDecisionRequest, db: Session = Depends(get_db)):
    """Approve or deny a pending correction; decisions are final."""
    return {"correction": correction_service.decide_correction(db, correction_id, body.status)}
