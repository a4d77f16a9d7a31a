from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from taskboard.models import TaskStatus


class TaskCreate(BaseModel):
    """Schema for creating a new task. Status always starts as pending."""
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    due_date: date | None = None
    assigned_to: int | None = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: date | None) -> date | None:
        if value is not None and value <= date.today():
            raise ValueError("The due date must be a date after today.")
        return value


class TaskUpdate(BaseModel):
    """
    Schema for updating a task.

    Managers may send any field; assignees may only send status.
    created_by is not updatable.
    """
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    due_date: date | None = None
    assigned_to: int | None = None


class TaskSummary(BaseModel):
    """Compact task view embedded in dependency responses."""
    id: int
    title: str
    status: str
    due_date: date | None
    assigned_to: int | None

    model_config = {"from_attributes": True}


class TaskRead(BaseModel):
    """Schema for reading a task."""
    id: int
    title: str
    description: str | None
    status: str
    due_date: date | None
    assigned_to: int | None
    created_by: int
    is_overdue: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskDetail(TaskRead):
    """Single-task view with its direct dependency neighbourhood."""
    dependency_ids: list[int] = []
    dependent_ids: list[int] = []
    can_be_completed: bool = True
