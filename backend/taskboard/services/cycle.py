"""
Cycle detection for dependency validation.

Adding the edge ``task_id -> depends_on_task_id`` closes a cycle exactly
when ``task_id`` is already reachable from ``depends_on_task_id``. The
check walks the live edge set from the store on every call; nothing is
cached between proposals.
"""

from typing import Protocol

from taskboard.logging_config import get_logger

logger = get_logger(__name__)


class EdgeSource(Protocol):
    """Anything that can list a task's direct dependencies."""

    async def outgoing_edges(self, task_id: int) -> list[int]: ...


async def reachable(edges: EdgeSource, source: int, target: int) -> bool:
    """
    Return True if ``target`` can be reached from ``source``.

    Iterative depth-first search with an explicit stack. The visited set
    guarantees termination even when the stored graph already contains a
    cycle, and call depth stays constant however long the chains are.
    """
    if source == target:
        return True

    visited: set[int] = {source}
    stack: list[int] = [source]

    while stack:
        current = stack.pop()
        # Reversed so the lowest id is explored first
        for neighbour in reversed(await edges.outgoing_edges(current)):
            if neighbour == target:
                return True
            if neighbour in visited:
                continue
            visited.add(neighbour)
            stack.append(neighbour)

    logger.debug(f"No path {source} -> {target} ({len(visited)} tasks visited)")
    return False


async def would_create_cycle(
    edges: EdgeSource,
    task_id: int,
    depends_on_task_id: int,
) -> bool:
    """
    Check if adding ``task_id -> depends_on_task_id`` would create a cycle.

    Self-loops are rejected before this runs, but would also report True.
    """
    return await reachable(edges, depends_on_task_id, task_id)
