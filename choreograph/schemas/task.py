from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, validator

from choreograph.models.task import TaskPriority


def _naive_utc(value):
    """ISO strings ending in 'Z' and aware datetimes become naive UTC"""
    if isinstance(value, str) and value.endswith('Z'):
        return datetime.fromisoformat(value[:-1] + '+00:00').replace(tzinfo=None)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None) - value.utcoffset()
    return value


class TaskBase(BaseModel):
    """Base schema for task data"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    priority: TaskPriority = TaskPriority.MEDIUM
    deadline: Optional[datetime] = None

    @validator('deadline', pre=True)
    def parse_deadline(cls, value):
        return _naive_utc(value)

    @validator('deadline')
    def strip_timezone(cls, value):
        # Offsets other than Z are only known after parsing
        return _naive_utc(value)


class TaskCreate(TaskBase):
    """Schema for task creation; order is appended to the column when omitted"""
    column_id: Optional[int] = None
    assignee_id: Optional[int] = None
    order: Optional[int] = Field(None, ge=0)


class TaskUpdate(BaseModel):
    """Schema for task update; an explicit null deadline clears it"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    priority: Optional[TaskPriority] = None
    column_id: Optional[int] = None
    assignee_id: Optional[int] = None
    order: Optional[int] = Field(None, ge=0)
    deadline: Optional[datetime] = None

    @validator('deadline', pre=True)
    def parse_deadline(cls, value):
        if value == '':
            return None
        return _naive_utc(value)

    @validator('deadline')
    def strip_timezone(cls, value):
        # Offsets other than Z are only known after parsing
        return _naive_utc(value)


class TaskResponse(TaskBase):
    """Schema for task response"""
    id: int
    project_id: int
    column_id: Optional[int] = None
    assignee_id: Optional[int] = None
    order: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskAssignment(BaseModel):
    """Schema for assigning a user to a task"""
    assignee_id: int
