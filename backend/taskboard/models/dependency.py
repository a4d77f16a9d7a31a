from datetime import datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field


class TaskDependency(SQLModel, table=True):
    """
    Directed edge in the task dependency graph.

    task_id -> depends_on_task_id means:
    "task_id cannot be completed until depends_on_task_id is completed"

    Example: If Task A waits on Task B:
    - task_id = A.id (the dependent)
    - depends_on_task_id = B.id (the dependency)

    Both columns are indexed so the adjacency lists in either direction
    are index lookups.
    """

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependency_pair"),
        CheckConstraint("task_id != depends_on_task_id", name="ck_no_self_dependency"),
    )

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", index=True)
    depends_on_task_id: int = Field(foreign_key="tasks.id", index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
