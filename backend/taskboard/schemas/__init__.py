from taskboard.schemas.common import ApiResponse, Page
from taskboard.schemas.user import UserRead
from taskboard.schemas.task import TaskCreate, TaskUpdate, TaskRead, TaskDetail, TaskSummary
from taskboard.schemas.dependency import (
    DependencyCreate,
    DependencyRead,
    DependencyGraphRead,
    ClearDependenciesResult,
)

__all__ = [
    "ApiResponse",
    "Page",
    "UserRead",
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "TaskDetail",
    "TaskSummary",
    "DependencyCreate",
    "DependencyRead",
    "DependencyGraphRead",
    "ClearDependenciesResult",
]
