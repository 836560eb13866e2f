from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    client_id: int = Field(alias="clientId")
    status: Optional[str] = None
    due_date: date = Field(alias="dueDate")
    responsible: Optional[str] = None
    comment: Optional[str] = None

    class Config:
        populate_by_name = True


class ProjectUpdate(BaseModel):
    status: Optional[str] = None
    progress: Optional[float] = None
    responsible: Optional[str] = None
    comment: Optional[str] = None


class ProjectResponse(BaseModel):
    id: int
    name: str
    client_id: int
    status: str
    progress: int
    due_date: date
    responsible: Optional[str] = ""
    comment: Optional[str] = ""

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    id: Optional[int] = None
    label: str
    type: str

    class Config:
        from_attributes = True
