from datetime import date, datetime
from enum import Enum

from sqlmodel import SQLModel, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


class Task(SQLModel, table=True):
    """
    Task model.

    Key fields:
    - status: one of TaskStatus; only ``completed`` satisfies dependents
    - assigned_to: the user allowed to transition status (nullable)
    - created_by: the manager who created the task, never reassigned
    """

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(index=True, max_length=255)
    description: str | None = Field(default=None)
    status: str = Field(default=TaskStatus.PENDING.value, index=True, max_length=20)
    due_date: date | None = Field(default=None, index=True)

    # Foreign keys
    assigned_to: int | None = Field(default=None, foreign_key="users.id", index=True)
    created_by: int = Field(foreign_key="users.id")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    @property
    def is_overdue(self) -> bool:
        return (
            self.due_date is not None
            and self.due_date < date.today()
            and not self.is_completed
        )
