"""
Task routes for the Taskboard API.

Managers create, edit and delete tasks. Users see the tasks assigned to
them and may only move those tasks between statuses. Completing a task
requires every direct dependency to be completed first.
"""

import math
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskboard.auth import ensure_can_view, ensure_manager, get_current_user
from taskboard.config import get_settings
from taskboard.database import get_session
from taskboard.exceptions import ForbiddenError, InvalidReferenceError, NotFoundError, ValidationError
from taskboard.logging_config import get_logger
from taskboard.models import Task, TaskStatus, User
from taskboard.schemas import ApiResponse, Page, TaskCreate, TaskDetail, TaskRead, TaskUpdate
from taskboard.services.dependencies import DependencyGraphEngine

logger = get_logger(__name__)

router = APIRouter()


async def _get_task_or_404(session: AsyncSession, task_id: int) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task", task_id, "Task not found")
    return task


async def _ensure_user_exists(session: AsyncSession, user_id: int | None) -> None:
    if user_id is not None and await session.get(User, user_id) is None:
        raise InvalidReferenceError("assigned_to", "User", user_id)


@router.get("/", response_model=ApiResponse[Page[TaskRead]])
async def list_tasks(
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
    assigned_user: int | None = None,
    due_date_from: date | None = None,
    due_date_to: date | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[Page[TaskRead]]:
    """
    List tasks, newest first.

    Users only ever see tasks assigned to them. The due date range applies
    only when both bounds are given.
    """
    settings = get_settings()
    per_page = min(per_page or settings.default_page_size, settings.max_page_size)

    query = select(Task)
    if not user.is_manager:
        query = query.where(Task.assigned_to == user.id)
    if status_filter:
        query = query.where(Task.status == status_filter.value)
    if assigned_user is not None:
        query = query.where(Task.assigned_to == assigned_user)
    if due_date_from and due_date_to:
        query = query.where(Task.due_date.between(due_date_from, due_date_to))

    total = (await session.execute(
        select(func.count()).select_from(query.subquery())
    )).scalar_one()

    result = await session.execute(
        query.order_by(Task.id.desc()).offset((page - 1) * per_page).limit(per_page)
    )
    tasks = list(result.scalars().all())

    logger.debug(f"Listed {len(tasks)} of {total} tasks for user={user.id}")

    return ApiResponse(data=Page[TaskRead](
        items=[TaskRead.model_validate(t) for t in tasks],
        total=total,
        page=page,
        per_page=per_page,
        last_page=max(1, math.ceil(total / per_page)),
    ))


@router.post("/", response_model=ApiResponse[TaskRead], status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[TaskRead]:
    """Create a new task. New tasks always start as pending."""
    ensure_manager(user, "create tasks")
    await _ensure_user_exists(session, task_in.assigned_to)

    task = Task(
        **task_in.model_dump(),
        status=TaskStatus.PENDING.value,
        created_by=user.id,
    )
    session.add(task)
    await session.flush()
    await session.refresh(task)

    logger.info(f"Created task: id={task.id} title='{task.title}' assigned_to={task.assigned_to}")

    return ApiResponse(message="Task created successfully", data=TaskRead.model_validate(task))


@router.get("/{task_id}", response_model=ApiResponse[TaskDetail])
async def get_task(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[TaskDetail]:
    """Get a task with its direct dependencies and dependents."""
    task = await _get_task_or_404(session, task_id)
    ensure_can_view(user, task)

    engine = DependencyGraphEngine(session, actor=user)
    neighbourhood = await engine.graph(task_id)
    detail = TaskDetail(
        **TaskRead.model_validate(task).model_dump(),
        dependency_ids=[t.id for t in neighbourhood.dependencies],
        dependent_ids=[t.id for t in neighbourhood.dependents],
        can_be_completed=neighbourhood.can_be_completed,
    )
    return ApiResponse(data=detail)


@router.api_route("/{task_id}", methods=["PUT", "PATCH"], response_model=ApiResponse[TaskRead])
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[TaskRead]:
    """
    Update a task.

    Managers may change any field. The assignee may only change status.
    Moving to ``completed`` is refused while a direct dependency is not
    completed.
    """
    task = await _get_task_or_404(session, task_id)
    update_data = task_in.model_dump(exclude_unset=True)

    if not user.is_manager:
        if task.assigned_to != user.id:
            raise ForbiddenError("You can only update tasks assigned to you.")
        if update_data.get("status") is None:
            raise ValidationError("Validation failed", errors={"status": ["The status field is required."]})
        other_fields = sorted(set(update_data) - {"status"})
        if other_fields:
            raise ValidationError(
                "You can only update the status of a task.",
                errors={field: ["This field cannot be changed by the assignee."] for field in other_fields},
            )
    elif "assigned_to" in update_data:
        await _ensure_user_exists(session, update_data["assigned_to"])

    if "title" in update_data and update_data["title"] is None:
        raise ValidationError("Validation failed", errors={"title": ["The title field is required."]})

    if "status" in update_data:
        if update_data["status"] is None:
            raise ValidationError("Validation failed", errors={"status": ["The status field is required."]})
        update_data["status"] = update_data["status"].value
        if update_data["status"] == TaskStatus.COMPLETED.value:
            engine = DependencyGraphEngine(session, actor=user)
            await engine.ensure_can_complete(task_id)

    logger.info(f"Updating task {task_id}: {update_data}")

    for field, value in update_data.items():
        setattr(task, field, value)
    task.updated_at = datetime.utcnow()

    await session.flush()
    await session.refresh(task)

    return ApiResponse(message="Task updated successfully", data=TaskRead.model_validate(task))


@router.delete("/{task_id}", response_model=ApiResponse[None])
async def delete_task(
    task_id: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ApiResponse[None]:
    """
    Delete a task.

    Refused with 422 while other tasks depend on it; the task's own
    dependency edges are removed with it.
    """
    ensure_manager(user, "delete tasks")

    engine = DependencyGraphEngine(session, actor=user)
    await engine.delete_task(task_id)
    return ApiResponse(message="Task deleted successfully")
