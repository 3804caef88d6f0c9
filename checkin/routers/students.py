from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkin.database import get_db
from checkin.schemas.student import (
    ClockInRequest,
    CorrectionRequest,
    NeedRequest,
    StudentRequest,
    WorkingStateRequest,
)
from checkin.services import correction_service, roster_service, session_service

router = APIRouter()


@router.get("/students", tags=["students"])
def list_students(db: Session = Depends(get_db)):
    """Active roster for the student picker."""
    return {"students": roster_service.list_active_students(db)}


@router.post("/student/clock-in", tags=["students"])
def clock_in(body: ClockInRequest, db: Session = Depends(get_db)):
    return session_service.clock_in(
        db,
        body.student_id,
        subteam=body.subteam,
        working_on=body.working_on,
        task_id=body.task_id,
    )


@router.post("/student/clock-out", tags=["students"])
def clock_out(body: StudentRequest, db: Session = Depends(get_db)):
    return session_service.clock_out(db, body.student_id)


@router.post("/student/update", tags=["students"])
def update_working_state(body: WorkingStateRequest, db: Session = Depends(get_db)):
    """Update today's subteam / working-on without touching clock times."""
    return session_service.update_working_state(
        db,
        body.student_id,
        subteam=body.subteam,
        working_on=body.working_on,
    )


@router.post("/student/need", tags=["students"])
def toggle_need(body: NeedRequest, db: Session = Depends(get_db)):
    """Raise or clear the need-help / need-task flag."""
    return session_service.toggle_need(db, body.student_id, body.type, bool(body.value))


@router.get("/student/today/{student_id}", tags=["students"])
def get_today(student_id: int, db: Session = Depends(get_db)):
    return session_service.get_today_session(db, student_id)


@router.post("/student/attendance-correction", tags=["students"])
def request_correction(body: CorrectionRequest, db: Session = Depends(get_db)):
    """Ask mentors to fix a clock-in/out record."""
    correction = correction_service.request_correction(
        db,
        body.student_id,
        body.meeting_date,
        body.clock_in_time,
        clock_out_time=body.clock_out_time,
        reason=body.reason,
    )
    return {"correction": correction}
