"""
Dependency store: persistence of dependency edges over an AsyncSession.

The engine and the cycle detector never touch SQL directly; everything
they need about the edge set goes through this class. Queries always hit
the session, so every call sees the live edge set of the current
transaction.
"""

from typing import Iterable

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskboard.exceptions import DuplicateDependencyError, NotFoundError
from taskboard.models import Task, TaskDependency


class DependencyStore:
    """Edge storage for the task dependency graph."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def tasks_exist(self, *task_ids: int) -> set[int]:
        """Return the subset of ``task_ids`` that exist."""
        if not task_ids:
            return set()
        result = await self.session.execute(
            select(Task.id).where(Task.id.in_(set(task_ids)))
        )
        return {row[0] for row in result.all()}

    async def get_tasks(self, task_ids: Iterable[int]) -> list[Task]:
        """Fetch tasks by id, ordered by id."""
        ids = set(task_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Task).where(Task.id.in_(ids)).order_by(Task.id)
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    async def get_edge(self, task_id: int, depends_on_task_id: int) -> TaskDependency | None:
        result = await self.session.execute(
            select(TaskDependency).where(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_task_id == depends_on_task_id,
            )
        )
        return result.scalars().first()

    async def get_edge_by_id(self, edge_id: int) -> TaskDependency | None:
        return await self.session.get(TaskDependency, edge_id)

    async def edge_exists(self, task_id: int, depends_on_task_id: int) -> bool:
        return await self.get_edge(task_id, depends_on_task_id) is not None

    async def create_edge(self, task_id: int, depends_on_task_id: int) -> TaskDependency:
        """
        Insert the edge ``task_id -> depends_on_task_id``.

        Raises:
            NotFoundError: either task does not exist.
            DuplicateDependencyError: the pair is already stored.
        """
        existing = await self.tasks_exist(task_id, depends_on_task_id)
        for tid in (task_id, depends_on_task_id):
            if tid not in existing:
                raise NotFoundError("Task", tid)
        if await self.edge_exists(task_id, depends_on_task_id):
            raise DuplicateDependencyError(task_id, depends_on_task_id)

        edge = TaskDependency(task_id=task_id, depends_on_task_id=depends_on_task_id)
        self.session.add(edge)
        await self.session.flush()
        await self.session.refresh(edge)
        return edge

    async def delete_edge(self, task_id: int, depends_on_task_id: int) -> None:
        """Remove one edge; NotFoundError if it is not stored."""
        edge = await self.get_edge(task_id, depends_on_task_id)
        if edge is None:
            raise NotFoundError("Dependency", f"{task_id}->{depends_on_task_id}", "Dependency not found")
        await self.session.delete(edge)
        await self.session.flush()

    async def delete_edge_by_id(self, edge_id: int) -> TaskDependency:
        edge = await self.get_edge_by_id(edge_id)
        if edge is None:
            raise NotFoundError("Dependency", edge_id, "Dependency not found")
        await self.session.delete(edge)
        await self.session.flush()
        return edge

    async def delete_all_edges_for_task(self, task_id: int) -> int:
        """Remove every edge where ``task_id`` is the dependent side."""
        result = await self.session.execute(
            delete(TaskDependency).where(TaskDependency.task_id == task_id)
        )
        await self.session.flush()
        return result.rowcount or 0

    async def edges_from(self, task_id: int) -> set[int]:
        """Direct dependencies of ``task_id``."""
        return set(await self.outgoing_edges(task_id))

    async def edges_to(self, task_id: int) -> set[int]:
        """Direct dependents of ``task_id``."""
        result = await self.session.execute(
            select(TaskDependency.task_id).where(
                TaskDependency.depends_on_task_id == task_id
            )
        )
        return {row[0] for row in result.all()}

    async def outgoing_edges(self, task_id: int) -> list[int]:
        """Direct dependencies of ``task_id`` in ascending id order."""
        result = await self.session.execute(
            select(TaskDependency.depends_on_task_id)
            .where(TaskDependency.task_id == task_id)
            .order_by(TaskDependency.depends_on_task_id)
        )
        return [row[0] for row in result.all()]

    async def list_dependencies(self, task_id: int) -> list[TaskDependency]:
        result = await self.session.execute(
            select(TaskDependency)
            .where(TaskDependency.task_id == task_id)
            .order_by(TaskDependency.id)
        )
        return list(result.scalars().all())

    async def list_dependents(self, task_id: int) -> list[TaskDependency]:
        result = await self.session.execute(
            select(TaskDependency)
            .where(TaskDependency.depends_on_task_id == task_id)
            .order_by(TaskDependency.id)
        )
        return list(result.scalars().all())

    async def incomplete_dependency_ids(self, task_id: int, completed: str) -> list[int]:
        """Ids of direct dependencies whose status is not ``completed``."""
        result = await self.session.execute(
            select(Task.id)
            .join(TaskDependency, TaskDependency.depends_on_task_id == Task.id)
            .where(TaskDependency.task_id == task_id, Task.status != completed)
            .order_by(Task.id)
        )
        return [row[0] for row in result.all()]

    async def edge_count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(TaskDependency))
        return result.scalar_one()

    async def all_edges(self) -> list[tuple[int, int]]:
        result = await self.session.execute(
            select(TaskDependency.task_id, TaskDependency.depends_on_task_id)
        )
        return [(row[0], row[1]) for row in result.all()]

