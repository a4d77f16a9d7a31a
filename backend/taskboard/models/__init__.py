from taskboard.models.user import User, UserRole
from taskboard.models.task import Task, TaskStatus
from taskboard.models.dependency import TaskDependency

__all__ = [
    "User",
    "UserRole",
    "Task",
    "TaskStatus",
    "TaskDependency",
]
