import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from checkin.config import config
from checkin.database import atomic, dialect_insert
from checkin.models.student import Student
from checkin.models.task import AUTHOR_TYPES, TASK_STATUSES, Task, TaskAssignment, TaskComment
from checkin.services.roster_service import get_active_student, get_student
from checkin.utils.date_utils import serialize_datetime, utc_now
from checkin.utils.error_utils import handle_not_found_error, handle_validation_error

logger = logging.getLogger(__name__)

STATUS_RANK = {status: rank for rank, status in enumerate(TASK_STATUSES, start=1)}
DEFAULT_MENTOR_LABEL = "Mentor"


def task_to_dict(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "subteam": task.subteam,
        "status": task.status,
        "description": task.description,
        "archived": task.archived,
        "created_at": serialize_datetime(task.created_at),
        "updated_at": serialize_datetime(task.updated_at),
    }


def comment_to_dict(comment: TaskComment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "task_id": comment.task_id,
        "author_type": comment.author_type,
        "author_label": comment.author_label,
        "comment": comment.comment,
        "created_at": serialize_datetime(comment.created_at),
    }


def validate_status(status: Optional[str]) -> Optional[str]:
    """Returns the status unchanged when it is one of the board columns; blank means None."""
    if not status:
        return None
    if status not in TASK_STATUSES:
        raise handle_validation_error(f"Invalid status '{status}'. Use one of: {', '.join(TASK_STATUSES)}")
    return status


def get_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise handle_not_found_error("Task", task_id)
    return task


def touch_task(db: Session, task_id: int, now: datetime) -> None:
    """Bumps updated_at, which feeds staleness."""
    db.execute(update(Task).where(Task.id == task_id).values(updated_at=now))


def list_tasks(
        db: Session,
        subteam: Optional[str] = None,
        status: Optional[str] = None,
        include_archived: bool = False,
        now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Returns the task board.

    Tasks are ordered by column (todo, in_progress, blocked, done) and then by
    most recent update. Each task carries its active assignees, its latest
    activity time (task update, newest comment or newest active assignment)
    and a stale flag when that activity is older than the configured window.

    Args:
        db: database session
        subteam: only tasks of this subteam
        status: only tasks in this column
        include_archived: include archived tasks
        now: reference instant for staleness (None means now)

    Returns:
        List[Dict]: annotated tasks
    """
    now = now or utc_now()
    subteam = (subteam or "").strip()
    status = validate_status((status or "").strip())

    query = db.query(Task)
    if subteam:
        query = query.filter(Task.subteam == subteam)
    if status:
        query = query.filter(Task.status == status)
    if not include_archived:
        query = query.filter(Task.archived == False)

    rank = case(STATUS_RANK, value=Task.status, else_=len(STATUS_RANK) + 1)
    tasks = query.order_by(rank, Task.updated_at.desc()).all()
    if not tasks:
        return []

    task_ids = [task.id for task in tasks]

    last_comments = dict(
        db.query(TaskComment.task_id, func.max(TaskComment.created_at))
        .filter(TaskComment.task_id.in_(task_ids))
        .group_by(TaskComment.task_id)
        .all()
    )

    active_rows = db.query(
        TaskAssignment.task_id,
        TaskAssignment.assigned_at,
        Student.id,
        Student.full_name
    ).join(
        Student, Student.id == TaskAssignment.student_id
    ).filter(
        TaskAssignment.task_id.in_(task_ids),
        TaskAssignment.unassigned_at.is_(None)
    ).order_by(Student.full_name.asc()).all()

    assignees: Dict[int, List[Dict[str, Any]]] = {}
    last_assigned: Dict[int, datetime] = {}
    for task_id, assigned_at, student_id, full_name in active_rows:
        assignees.setdefault(task_id, []).append({"student_id": student_id, "full_name": full_name})
        if task_id not in last_assigned or assigned_at > last_assigned[task_id]:
            last_assigned[task_id] = assigned_at

    stale_before = now - timedelta(days=config.tasks.stale_after_days)
    results = []
    for task in tasks:
        candidates = [task.updated_at, last_comments.get(task.id), last_assigned.get(task.id)]
        last_activity_at = max(c for c in candidates if c is not None)

        item = task_to_dict(task)
        item["last_activity_at"] = serialize_datetime(last_activity_at)
        item["is_stale"] = last_activity_at < stale_before
        item["assignees"] = assignees.get(task.id, [])
        results.append(item)

    return results


def create_task(
        db: Session,
        title: Optional[str],
        subteam: Optional[str],
        description: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    now = now or utc_now()
    title = (title or "").strip()
    subteam = (subteam or "").strip()
    if not title:
        raise handle_validation_error("Missing title")
    if not subteam:
        raise handle_validation_error("Missing subteam")
    status = validate_status(status) or "todo"

    with atomic(db):
        task = Task(
            title=title,
            subteam=subteam,
            status=status,
            description=(description or "").strip(),
            archived=False,
            created_at=now,
            updated_at=now,
        )
        db.add(task)
        db.flush()

    logger.info(f"Task created: {task.id} '{task.title}' ({task.subteam}, {task.status})")
    return task_to_dict(task)


def update_task(
        db: Session,
        task_id: int,
        title: Optional[str] = None,
        subteam: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Partial task update. Blank title/subteam keep their old values, a None
    description is left as is, an unknown status is rejected.
    """
    now = now or utc_now()
    status = validate_status(status)

    with atomic(db):
        task = get_task(db, task_id)
        if title and title.strip():
            task.title = title.strip()
        if subteam and subteam.strip():
            task.subteam = subteam.strip()
        if description is not None:
            task.description = description
        if status:
            task.status = status
        task.updated_at = now

    logger.info(f"Task updated: {task_id} (status={task.status})")
    return task_to_dict(task)


def set_archived(db: Session, task_id: int, archived: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    with atomic(db):
        task = get_task(db, task_id)
        task.archived = archived
        task.updated_at = now

    logger.info(f"Task {'archived' if archived else 'unarchived'}: {task_id}")
    return task_to_dict(task)


def register_assignment(db: Session, task_id: int, student_id: int, now: datetime) -> bool:
    """
    Inserts an active assignment unless one already exists.

    The partial unique index on (task_id, student_id) where unassigned_at is
    null settles concurrent callers; the loser's insert does nothing.
    Does not commit.

    Returns:
        bool: True when a new row was inserted
    """
    stmt = dialect_insert(db, TaskAssignment).values(
        task_id=task_id,
        student_id=student_id,
        assigned_at=now,
    ).on_conflict_do_nothing(
        index_elements=["task_id", "student_id"],
        index_where=TaskAssignment.unassigned_at.is_(None),
    )
    result = db.execute(stmt)
    return result.rowcount > 0


def start_task_for_clock_in(db: Session, task_id: int, now: datetime) -> None:
    """Moves a task from todo to in_progress; blocked and done are left alone. Does not commit."""
    db.execute(
        update(Task)
        .where(Task.id == task_id)
        .values(
            status=case((Task.status == "todo", "in_progress"), else_=Task.status),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def _add_member(db: Session, task_id: int, student_id: Optional[int], now: Optional[datetime], via: str) -> Dict[str, Any]:
    now = now or utc_now()
    with atomic(db):
        student = get_active_student(db, student_id)
        get_task(db, task_id)
        inserted = register_assignment(db, task_id, student.id, now)
        touch_task(db, task_id, now)

    if inserted:
        logger.info(f"Student {student.id} {via} task {task_id}")
    else:
        logger.info(f"Student {student.id} already on task {task_id}; {via} was a no-op")
    return {"ok": True}


def join_task(db: Session, task_id: int, student_id: Optional[int], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Student joins a task. Repeating the call leaves one active assignment."""
    return _add_member(db, task_id, student_id, now, "joined")


def assign_student(db: Session, task_id: int, student_id: Optional[int], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Mentor assigns a student; same idempotent insert as join."""
    return _add_member(db, task_id, student_id, now, "assigned to")


def leave_task(db: Session, task_id: int, student_id: Optional[int], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Soft-unassigns the active membership only; earlier memberships stay as history."""
    now = now or utc_now()
    if not student_id:
        raise handle_validation_error("Missing studentId")

    with atomic(db):
        get_task(db, task_id)
        closed = db.query(TaskAssignment).filter(
            TaskAssignment.task_id == task_id,
            TaskAssignment.student_id == student_id,
            TaskAssignment.unassigned_at.is_(None)
        ).update({TaskAssignment.unassigned_at: now}, synchronize_session=False)
        touch_task(db, task_id, now)

    logger.info(f"Student {student_id} left task {task_id} ({closed} active row(s) closed)")
    return {"ok": True}


def list_comments(db: Session, task_id: int) -> List[Dict[str, Any]]:
    comments = db.query(TaskComment).filter(
        TaskComment.task_id == task_id
    ).order_by(TaskComment.created_at.asc(), TaskComment.id.asc()).all()
    return [comment_to_dict(c) for c in comments]


def post_comment(
        db: Session,
        task_id: int,
        comment: Optional[str],
        student_id: Optional[int] = None,
        author_label: Optional[str] = None,
        now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Appends a comment to a task and bumps its activity clock.

    The author is the student when a student id is given (name looked up),
    otherwise a mentor with the supplied label or "Mentor".

    Args:
        db: database session
        task_id: task to comment on
        comment: comment text, must be non-blank
        student_id: commenting student, if any
        author_label: mentor display label
        now: creation instant (None means now)

    Returns:
        Dict: the stored comment
    """
    now = now or utc_now()
    text = (comment or "").strip()
    if not text:
        raise handle_validation_error("Missing comment")

    with atomic(db):
        get_task(db, task_id)
        if student_id:
            author_type, label = AUTHOR_TYPES[0], get_student(db, student_id).full_name
        else:
            author_type, label = AUTHOR_TYPES[1], (author_label or "").strip() or DEFAULT_MENTOR_LABEL

        entry = TaskComment(
            task_id=task_id,
            author_type=author_type,
            author_label=label,
            comment=text,
            created_at=now,
        )
        db.add(entry)
        touch_task(db, task_id, now)
        db.flush()

    logger.info(f"Comment {entry.id} on task {task_id} by {author_type} '{label}'")
    return comment_to_dict(entry)
