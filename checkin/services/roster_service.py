import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkin.database import atomic, dialect_insert
from checkin.models.student import Student
from checkin.utils.date_utils import utc_now
from checkin.utils.error_utils import handle_not_found_error, handle_validation_error

logger = logging.getLogger(__name__)


def student_to_dict(student: Student) -> Dict[str, Any]:
    return {
        "id": student.id,
        "full_name": student.full_name,
        "subteam": student.subteam,
        "is_active": student.is_active,
    }


def get_student(db: Session, student_id: int) -> Student:
    """Looks a student up regardless of active flag; raises NotFoundError."""
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise handle_not_found_error("Student", student_id)
    return student


def get_active_student(db: Session, student_id: Optional[int]) -> Student:
    """
    Looks up an active student.

    Args:
        db: database session
        student_id: student id from the request body

    Returns:
        Student: the active student

    Raises:
        ValidationError: no id supplied
        NotFoundError: unknown or deactivated student
    """
    if not student_id:
        raise handle_validation_error("Missing studentId")

    student = db.query(Student).filter(
        Student.id == student_id,
        Student.is_active == True
    ).first()
    if not student:
        raise handle_not_found_error("Student", student_id)
    return student


def list_active_students(db: Session) -> List[Dict[str, Any]]:
    """Roster for the student picker: active only, name-sorted."""
    students = db.query(Student).filter(
        Student.is_active == True
    ).order_by(Student.full_name.asc()).all()
    return [student_to_dict(s) for s in students]


def list_all_students(db: Session) -> List[Dict[str, Any]]:
    students = db.query(Student).order_by(Student.full_name.asc()).all()
    return [student_to_dict(s) for s in students]


def upsert_student(db: Session, full_name: Optional[str], subteam: Optional[str] = None) -> Dict[str, Any]:
    """
    Adds a student, or refreshes the existing one with the same full name.
    An existing student gets the new subteam and is reactivated.

    Args:
        db: database session
        full_name: unique display name
        subteam: subteam label (blank means none)

    Returns:
        Dict: the stored student
    """
    name = (full_name or "").strip()
    if not name:
        raise handle_validation_error("Missing fullName")
    label = (subteam or "").strip() or None

    with atomic(db):
        stmt = dialect_insert(db, Student).values(
            full_name=name,
            subteam=label,
            is_active=True,
            created_at=utc_now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["full_name"],
            set_={"subteam": stmt.excluded.subteam, "is_active": True},
        )
        db.execute(stmt)
        student = db.query(Student).populate_existing().filter(Student.full_name == name).one()

    logger.info(f"Roster upsert: {student.full_name} (id={student.id}, subteam={student.subteam})")
    return student_to_dict(student)


def update_student(
        db: Session,
        student_id: int,
        full_name: Optional[str] = None,
        subteam: Optional[str] = None,
        is_active: Optional[bool] = None
) -> Dict[str, Any]:
    """
    Partial roster update. A blank full name keeps the old one, a blank
    subteam clears it, None leaves a field untouched.
    """
    try:
        with atomic(db):
            student = get_student(db, student_id)

            name = (full_name or "").strip()
            if name:
                student.full_name = name
            if subteam is not None:
                student.subteam = subteam.strip() or None
            if is_active is not None:
                student.is_active = is_active
    except IntegrityError:
        raise handle_validation_error(f"A student named {full_name.strip()} already exists")

    logger.info(f"Roster update: id={student.id}, active={student.is_active}")
    return student_to_dict(student)
