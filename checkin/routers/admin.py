from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkin.database import get_db
from checkin.schemas.admin import AddStudentRequest, UpdateStudentRequest
from checkin.services import roster_service
from checkin.utils.auth_utils import Permission, require_permission

router = APIRouter(tags=["admin"], dependencies=[Depends(require_permission(Permission.MANAGE_ROSTER))])


@router.get("/admin/students")
def list_students(db: Session = Depends(get_db)):
    """Full roster including deactivated students. (manager only)"""
    return {"students": roster_service.list_all_students(db)}


@router.post("/admin/students")
def add_student(body: AddStudentRequest, db: Session = Depends(get_db)):
    """Add a student, or refresh and reactivate one with the same name. (manager only)"""
    return {"student": roster_service.upsert_student(db, body.full_name, body.subteam)}


@router.patch("/admin/students/{student_id}")
def update_student(student_id: int, body: UpdateStudentRequest, db: Session = Depends(get_db)):
    """Rename, move or (de)activate a student. (manager only)"""
    student = roster_service.update_student(
        db,
        student_id,
        full_name=body.full_name,
        subteam=body.subteam,
        is_active=body.is_active,
    )
    return {"student": student}
