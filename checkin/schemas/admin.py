from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class AddStudentRequest(BaseModel):
    full_name: Optional[str] = Field(None, validation_alias=AliasChoices("fullName", "full_name"))
    subteam: Optional[str] = None


class UpdateStudentRequest(BaseModel):
    full_name: Optional[str] = Field(None, validation_alias=AliasChoices("fullName", "full_name"))
    subteam: Optional[str] = None
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("isActive", "is_active"))
