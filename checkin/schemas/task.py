from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskCreateRequest(BaseModel):
    title: Optional[str] = None
    subteam: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class TaskUpdateRequest(TaskCreateRequest):
    pass


class CommentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment: Optional[str] = None
    student_id: Optional[int] = Field(None, alias="studentId")
    author_label: Optional[str] = Field(None, alias="authorLabel")
