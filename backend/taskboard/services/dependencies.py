"""
Dependency graph engine.

Owns every write to the dependency edge set and the read-side queries the
task lifecycle depends on:

- add/remove/clear edges, guarded by self-loop, existence, duplicate and
  cycle checks (in that order; the cycle walk is the expensive one)
- completion readiness: a task may complete once all of its *direct*
  dependencies are completed
- the composite graph view for a single task
- task deletion, refused while other tasks depend on the task

Each mutation runs inside ``graph_mutation`` and commits before the lock
is released, so it is either fully visible or not at all.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import (
    CircularDependencyError,
    DependentsExistError,
    DuplicateDependencyError,
    IncompleteDependenciesError,
    InvalidReferenceError,
    NotFoundError,
    SelfDependencyError,
    StoreFailureError,
)
from taskboard.logging_config import get_logger
from taskboard.models import Task, TaskDependency, TaskStatus, User
from taskboard.schemas import DependencyGraphRead, DependencyRead, TaskSummary
from taskboard.services.cycle import would_create_cycle
from taskboard.services.locking import graph_mutation
from taskboard.services.store import DependencyStore

logger = get_logger(__name__)


class DependencyGraphEngine:
    """Edge lifecycle and readiness queries over one request's session."""

    def __init__(self, session: AsyncSession, actor: User | None = None):
        self.session = session
        self.store = DependencyStore(session)
        # Captured up front: a rollback expires ORM instances
        self.actor_id = actor.id if actor is not None else None

    @asynccontextmanager
    async def _mutation(self, operation: str, **ids: int) -> AsyncIterator[None]:
        """Run the block under the graph lock as one committed transaction."""
        context = {"operation": operation, "actor_id": self.actor_id, **ids}
        async with graph_mutation(self.session, operation, context):
            try:
                yield
                await self.session.commit()
            except (SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
                await self.session.rollback()
                logger.error(f"Store failure during {operation}: {exc!r}", extra=context, exc_info=True)
                raise StoreFailureError(operation) from exc
            except Exception:
                await self.session.rollback()
                raise

    @asynccontextmanager
    async def _query(self, operation: str, **ids: int) -> AsyncIterator[None]:
        """Map database errors on a read to StoreFailureError, logged with context."""
        try:
            yield
        except (SQLAlchemyError, OSError) as exc:
            await self.session.rollback()
            logger.error(
                f"Store failure during {operation}: {exc!r}",
                extra={"operation": operation, "actor_id": self.actor_id, **ids},
                exc_info=True,
            )
            raise StoreFailureError(operation) from exc

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_dependency(self, task_id: int, depends_on_task_id: int) -> DependencyRead:
        """
        Add the edge ``task_id -> depends_on_task_id``.

        Raises:
            SelfDependencyError: both ids are the same task.
            InvalidReferenceError: either task does not exist.
            DuplicateDependencyError: the edge is already stored.
            CircularDependencyError: ``task_id`` is reachable from
                ``depends_on_task_id``.
        """
        ids = {"task_id": task_id, "depends_on_task_id": depends_on_task_id}
        logger.info(f"Adding dependency: {task_id} -> {depends_on_task_id}", extra={"actor_id": self.actor_id})

        if task_id == depends_on_task_id:
            logger.warning(f"Self-dependency rejected: {task_id}", extra=ids)
            raise SelfDependencyError(task_id)

        async with self._mutation("add_dependency", **ids):
            existing = await self.store.tasks_exist(task_id, depends_on_task_id)
            if task_id not in existing:
                raise InvalidReferenceError("task_id", "Task", task_id)
            if depends_on_task_id not in existing:
                raise InvalidReferenceError("depends_on_task_id", "Task", depends_on_task_id)

            if await self.store.edge_exists(task_id, depends_on_task_id):
                logger.warning(f"Duplicate dependency rejected: {task_id} -> {depends_on_task_id}", extra=ids)
                raise DuplicateDependencyError(task_id, depends_on_task_id)

            logger.debug(f"Running cycle detection for {task_id} -> {depends_on_task_id}")
            if await would_create_cycle(self.store, task_id, depends_on_task_id):
                logger.warning(
                    f"Cycle detected: {task_id} -> {depends_on_task_id} would create a cycle",
                    extra=ids,
                )
                raise CircularDependencyError(task_id, depends_on_task_id)

            edge = await self.store.create_edge(task_id, depends_on_task_id)
            tasks = {t.id: t for t in await self.store.get_tasks([task_id, depends_on_task_id])}

        logger.info(
            f"Created dependency {edge.id}: '{tasks[task_id].title}' waits on "
            f"'{tasks[depends_on_task_id].title}'",
            extra={**ids, "dependency_id": edge.id, "actor_id": self.actor_id},
        )
        return _edge_read(edge, task=tasks[task_id], depends_on_task=tasks[depends_on_task_id])

    async def remove_dependency(self, task_id: int, depends_on_task_id: int) -> None:
        """Delete one edge. NotFoundError if it does not exist."""
        ids = {"task_id": task_id, "depends_on_task_id": depends_on_task_id}
        async with self._mutation("remove_dependency", **ids):
            await self.store.delete_edge(task_id, depends_on_task_id)
        logger.info(f"Removed dependency: {task_id} -> {depends_on_task_id}", extra={**ids, "actor_id": self.actor_id})

    async def remove_dependency_by_id(self, dependency_id: int, task_id: int | None = None) -> DependencyRead:
        """
        Delete one edge by its surrogate id.

        When ``task_id`` is given the edge must belong to that task,
        otherwise it is reported as not found.
        """
        async with self._mutation("remove_dependency", dependency_id=dependency_id):
            edge = await self.store.get_edge_by_id(dependency_id)
            if edge is None or (task_id is not None and edge.task_id != task_id):
                raise NotFoundError("Dependency", dependency_id, "Dependency not found")
            removed = _edge_read(edge)
            await self.store.delete_edge_by_id(dependency_id)
        logger.info(
            f"Removed dependency {dependency_id}: {removed.task_id} -> {removed.depends_on_task_id}",
            extra={"dependency_id": dependency_id, "actor_id": self.actor_id},
        )
        return removed

    async def clear_dependencies(self, task_id: int) -> int:
        """
        Delete every edge where ``task_id`` is the dependent side.

        Edges pointing at ``task_id`` (its dependents) are left alone.
        Returns the number of edges removed.
        """
        async with self._mutation("clear_dependencies", task_id=task_id):
            if not await self.store.tasks_exist(task_id):
                raise NotFoundError("Task", task_id, "Task not found")
            removed = await self.store.delete_all_edges_for_task(task_id)
        logger.info(f"Cleared {removed} dependencies of task {task_id}", extra={"task_id": task_id, "actor_id": self.actor_id})
        return removed

    async def delete_task(self, task_id: int) -> None:
        """
        Delete a task that nothing depends on.

        The task's own outgoing edges go with it. Runs under the graph lock
        so no edge can be added to the task between the check and the delete.

        Raises:
            NotFoundError: the task does not exist.
            DependentsExistError: at least one task depends on it.
        """
        async with self._mutation("delete_task", task_id=task_id):
            task = await self.session.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task", task_id, "Task not found")

            dependents = await self.store.edges_to(task_id)
            if dependents:
                logger.warning(
                    f"Deletion of task {task_id} blocked by {len(dependents)} dependents",
                    extra={"task_id": task_id},
                )
                raise DependentsExistError(task_id, sorted(dependents))

            removed = await self.store.delete_all_edges_for_task(task_id)
            await self.session.delete(task)
            await self.session.flush()
        logger.info(
            f"Deleted task {task_id} and {removed} of its dependency edges",
            extra={"task_id": task_id, "actor_id": self.actor_id},
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def incomplete_dependencies(self, task_id: int) -> list[int]:
        async with self._query("incomplete_dependencies", task_id=task_id):
            return await self.store.incomplete_dependency_ids(task_id, TaskStatus.COMPLETED.value)

    async def can_be_completed(self, task_id: int) -> bool:
        """True iff every direct dependency of the task is completed."""
        return not await self.incomplete_dependencies(task_id)

    async def ensure_can_complete(self, task_id: int) -> None:
        """Raise IncompleteDependenciesError unless the task may complete."""
        incomplete = await self.incomplete_dependencies(task_id)
        if incomplete:
            logger.warning(
                f"Completion of task {task_id} blocked by incomplete dependencies {incomplete}",
                extra={"task_id": task_id, "actor_id": self.actor_id},
            )
            raise IncompleteDependenciesError(task_id, incomplete)

    async def list_dependencies(self, task_id: int) -> list[DependencyRead]:
        """Edges where the task is the dependent, with the depended-on task resolved."""
        async with self._query("list_dependencies", task_id=task_id):
            edges = await self.store.list_dependencies(task_id)
            tasks = {t.id: t for t in await self.store.get_tasks(e.depends_on_task_id for e in edges)}
        logger.debug(f"Listed {len(edges)} dependencies of task {task_id}")
        return [_edge_read(e, depends_on_task=tasks.get(e.depends_on_task_id)) for e in edges]

    async def list_dependents(self, task_id: int) -> list[DependencyRead]:
        """Edges where the task is depended on, with the dependent task resolved."""
        async with self._query("list_dependents", task_id=task_id):
            edges = await self.store.list_dependents(task_id)
            tasks = {t.id: t for t in await self.store.get_tasks(e.task_id for e in edges)}
        logger.debug(f"Listed {len(edges)} dependents of task {task_id}")
        return [_edge_read(e, task=tasks.get(e.task_id)) for e in edges]

    async def graph(self, task_id: int) -> DependencyGraphRead:
        """Direct dependencies, direct dependents and readiness of one task."""
        async with self._query("graph", task_id=task_id):
            task = await self.session.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task", task_id, "Task not found")

            dependencies = await self.store.get_tasks(await self.store.edges_from(task_id))
            dependents = await self.store.get_tasks(await self.store.edges_to(task_id))

        return DependencyGraphRead(
            task=TaskSummary.model_validate(task),
            dependencies=[TaskSummary.model_validate(t) for t in dependencies],
            dependents=[TaskSummary.model_validate(t) for t in dependents],
            can_be_completed=all(t.is_completed for t in dependencies),
        )


def _edge_read(
    edge: TaskDependency,
    task: Task | None = None,
    depends_on_task: Task | None = None,
) -> DependencyRead:
    return DependencyRead(
        id=edge.id,
        task_id=edge.task_id,
        depends_on_task_id=edge.depends_on_task_id,
        created_at=edge.created_at,
        task=TaskSummary.model_validate(task) if task is not None else None,
        depends_on_task=TaskSummary.model_validate(depends_on_task) if depends_on_task is not None else None,
    )
