from datetime import datetime
from pydantic import BaseModel, Field

from taskboard.schemas.task import TaskSummary


class DependencyCreate(BaseModel):
    """
    Schema for creating a new dependency.

    task_id may be omitted; the task in the URL is used instead.
    """
    task_id: int | None = Field(default=None, gt=0)  # The dependent task
    depends_on_task_id: int = Field(gt=0)             # The task that must finish first


class DependencyRead(BaseModel):
    """
    Schema for reading a dependency edge.

    The endpoint summaries are filled in where the caller needs them:
    both on create, the far end on list endpoints.
    """
    id: int
    task_id: int
    depends_on_task_id: int
    created_at: datetime
    task: TaskSummary | None = None
    depends_on_task: TaskSummary | None = None

    model_config = {"from_attributes": True}


class DependencyGraphRead(BaseModel):
    """Direct neighbourhood of a task in the dependency graph."""
    task: TaskSummary
    dependencies: list[TaskSummary]
    dependents: list[TaskSummary]
    can_be_completed: bool


class ClearDependenciesResult(BaseModel):
    task_id: int
    removed: int
