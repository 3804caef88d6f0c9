from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkin.database import get_db
from checkin.schemas.student import StudentRequest
from checkin.schemas.task import CommentRequest, TaskCreateRequest, TaskUpdateRequest
from checkin.services import task_service
from checkin.utils.auth_utils import Permission, require_permission

router = APIRouter(tags=["tasks"])

mentor_only = [Depends(require_permission(Permission.MANAGE_TASKS))]


@router.get("/tasks")
def list_tasks(
        subteam: Optional[str] = None,
        status: Optional[str] = None,
        includeArchived: Optional[str] = None,
        db: Session = Depends(get_db)
):
    """
    Task board, open to everyone.

    - subteam: only this subteam
    - status: only this column
    - includeArchived: "true" to include archived tasks
    """
    include_archived = (includeArchived or "").strip().lower() == "true"
    return {"tasks": task_service.list_tasks(db, subteam, status, include_archived)}


@router.post("/tasks", dependencies=mentor_only)
def create_task(body: TaskCreateRequest, db: Session = Depends(get_db)):
    task = task_service.create_task(db, body.title, body.subteam, body.description, body.status)
    return {"task": task}


@router.patch("/tasks/{task_id}", dependencies=mentor_only)
def update_task(task_id: int, body: TaskUpdateRequest, db: Session = Depends(get_db)):
    task = task_service.update_task(
        db,
        task_id,
        title=body.title,
        subteam=body.subteam,
        description=body.description,
        status=body.status,
    )
    return {"task": task}


@router.post("/tasks/{task_id}/archive", dependencies=mentor_only)
def archive_task(task_id: int, db: Session = Depends(get_db)):
    return {"task": task_service.set_archived(db, task_id, True)}


@router.post("/tasks/{task_id}/unarchive", dependencies=mentor_only)
def unarchive_task(task_id: int, db: Session = Depends(get_db)):
    return {"task": task_service.set_archived(db, task_id, False)}


@router.post("/tasks/{task_id}/assign", dependencies=mentor_only)
def assign_student(task_id: int, body: StudentRequest, db: Session = Depends(get_db)):
    return task_service.assign_student(db, task_id, body.student_id)


@router.post("/tasks/{task_id}/join")
def join_task(task_id: int, body: StudentRequest, db: Session = Depends(get_db)):
    return task_service.join_task(db, task_id, body.student_id)


@router.post("/tasks/{task_id}/leave")
def leave_task(task_id: int, body: StudentRequest, db: Session = Depends(get_db)):
    return task_service.leave_task(db, task_id, body.student_id)


@router.get("/tasks/{task_id}/comments")
def list_comments(task_id: int, db: Session = Depends(get_db)):
    return {"comments": task_service.list_comments(db, task_id)}


@router.post("/tasks/{task_id}/comments")
def post_comment(task_id: int, body: CommentRequest, db: Session = Depends(get_db)):
    comment = task_service.post_comment(
        db,
        task_id,
        body.comment,
        student_id=body.student_id,
        author_label=body.author_label,
    )
    return {"comment": comment}
