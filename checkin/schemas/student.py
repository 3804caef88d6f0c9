from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StudentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: Optional[int] = Field(None, alias="studentId")


class ClockInRequest(StudentRequest):
    subteam: Optional[str] = None
    working_on: Optional[str] = Field(None, alias="workingOn")
    task_id: Optional[int] = Field(None, alias="taskId")


class WorkingStateRequest(StudentRequest):
    subteam: Optional[str] = None
    working_on: Optional[str] = Field(None, alias="workingOn")


class NeedRequest(StudentRequest):
    type: Optional[str] = None
    value: Optional[bool] = False


class CorrectionRequest(StudentRequest):
    meeting_date: Optional[str] = Field(None, alias="meetingDate")
    clock_in_time: Optional[str] = Field(None, alias="clockInTime")
    clock_out_time: Optional[str] = Field(None, alias="clockOutTime")
    reason: Optional[str] = None
