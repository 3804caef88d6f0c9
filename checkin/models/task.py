from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text

from checkin.database import Base
from checkin.utils.date_utils import utc_now

TASK_STATUSES = ("todo", "in_progress", "blocked", "done")
AUTHOR_TYPES = ("student", "mentor")


class Task(Base):
    """Kanban card. updated_at is the activity clock behind staleness."""
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(300), nullable=False)
    subteam = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="todo")
    description = Column(Text, nullable=False, default="")
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "status in ('todo', 'in_progress', 'blocked', 'done')",
            name="ck_tasks_status",
        ),
    )

    def __repr__(self):
        return f"<Task(id={self.id}, title={self.title}, status={self.status})>"


class TaskAssignment(Base):
    """Student membership on a task. Leaving stamps unassigned_at; rows are never deleted."""
    __tablename__ = "task_assignments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False, default=utc_now)
    unassigned_at = Column(DateTime, nullable=True)

    # at most one active row per (task, student)
    __table_args__ = (
        Index(
            "uix_task_assignments_active",
            "task_id",
            "student_id",
            unique=True,
            postgresql_where=unassigned_at.is_(None),
            sqlite_where=unassigned_at.is_(None),
        ),
    )

    def __repr__(self):
        return f"<TaskAssignment(task_id={self.task_id}, student_id={self.student_id}, active={self.unassigned_at is None})>"


class TaskComment(Base):
    """Append-only comment log."""
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    author_type = Column(String(20), nullable=False)
    author_label = Column(String(200), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f"<TaskComment(task_id={self.task_id}, author={self.author_label})>"
