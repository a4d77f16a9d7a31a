"""
Dependency routes for the Taskboard API.

Managers add and remove edges; the assignee of a task or any manager may
read its dependencies, dependents and graph.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.auth import ensure_can_view, ensure_manager, get_current_user
from taskboard.database import get_session
from taskboard.exceptions import NotFoundError, ValidationError
from taskboard.logging_config import get_logger
from taskboard.models import Task, User
from taskboard.schemas import (
    ApiResponse,
    ClearDependenciesResult,
    DependencyCreate,
    DependencyGraphRead,
    DependencyRead,
)
from taskboard.services.dependencies import DependencyGraphEngine

logger = get_logger(__name__)

router = APIRouter()

MANAGE_DEPENDENCIES = "manage task dependencies"


async def _get_task_or_404(session: AsyncSession, task_id: int) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task", task_id, "Task not found")
    return task


@router.post(
    "/tasks/{task_id}/dependencies",
    response_model=ApiResponse[DependencyRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_dependency(
    task_id: int,
    dep_in: DependencyCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[DependencyRead]:
    """
    Make the task wait on ``depends_on_task_id``.

    Rejected with 422 when the edge is a self-loop, references a missing
    task, already exists, or would close a cycle.
    """
    ensure_manager(user, MANAGE_DEPENDENCIES)

    if dep_in.task_id is not None and dep_in.task_id != task_id:
        raise ValidationError(
            "The task id in the body does not match the URL.",
            errors={"task_id": ["The task id must match the task in the URL."]},
        )

    engine = DependencyGraphEngine(session, actor=user)
    dependency = await engine.add_dependency(task_id, dep_in.depends_on_task_id)
    return ApiResponse(message="Task dependency added successfully", data=dependency)


@router.get("/tasks/{task_id}/dependencies", response_model=ApiResponse[list[DependencyRead]])
async def list_dependencies(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[list[DependencyRead]]:
    """Tasks this task waits on (direct only)."""
    task = await _get_task_or_404(session, task_id)
    ensure_can_view(user, task, "dependencies for tasks")

    engine = DependencyGraphEngine(session, actor=user)
    return ApiResponse(data=await engine.list_dependencies(task_id))


@router.get("/tasks/{task_id}/dependents", response_model=ApiResponse[list[DependencyRead]])
async def list_dependents(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[list[DependencyRead]]:
    """Tasks waiting on this task (direct only)."""
    task = await _get_task_or_404(session, task_id)
    ensure_can_view(user, task, "dependents for tasks")

    engine = DependencyGraphEngine(session, actor=user)
    return ApiResponse(data=await engine.list_dependents(task_id))


@router.get("/tasks/{task_id}/graph", response_model=ApiResponse[DependencyGraphRead])
async def get_dependency_graph(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[DependencyGraphRead]:
    """Direct dependencies, direct dependents and whether the task can complete."""
    task = await _get_task_or_404(session, task_id)
    ensure_can_view(user, task, "dependency graphs for tasks")

    engine = DependencyGraphEngine(session, actor=user)
    return ApiResponse(data=await engine.graph(task_id))


@router.delete("/tasks/{task_id}/dependencies/{depends_on_task_id}", response_model=ApiResponse[None])
async def delete_dependency(
    task_id: int,
    depends_on_task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[None]:
    """Remove the edge ``task_id -> depends_on_task_id``."""
    ensure_manager(user, MANAGE_DEPENDENCIES)

    engine = DependencyGraphEngine(session, actor=user)
    await engine.remove_dependency(task_id, depends_on_task_id)
    return ApiResponse(message="Task dependency removed successfully")


@router.delete("/tasks/{task_id}/dependencies", response_model=ApiResponse[ClearDependenciesResult])
async def clear_dependencies(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[ClearDependenciesResult]:
    """Remove every dependency of the task; its dependents are untouched."""
    ensure_manager(user, MANAGE_DEPENDENCIES)

    engine = DependencyGraphEngine(session, actor=user)
    removed = await engine.clear_dependencies(task_id)
    return ApiResponse(
        message=f"Removed {removed} task dependencies",
        data=ClearDependenciesResult(task_id=task_id, removed=removed),
    )


@router.delete("/dependencies/{dependency_id}", response_model=ApiResponse[DependencyRead])
async def delete_dependency_by_id(
    dependency_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[DependencyRead]:
    """Remove an edge by its own id."""
    ensure_manager(user, MANAGE_DEPENDENCIES)

    engine = DependencyGraphEngine(session, actor=user)
    removed = await engine.remove_dependency_by_id(dependency_id)
    return ApiResponse(message="Task dependency removed successfully", data=removed)
