"""
Whole-graph operations using NetworkX.

This module handles:
- Materializing the stored dependency edges as a DiGraph
- Auditing the stored graph for cycles (run at startup)

The per-edge cycle check used on writes lives in ``services.cycle``; it
only walks the part of the graph reachable from the proposed edge.
"""

from typing import Iterable

import networkx as nx
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.logging_config import get_logger
from taskboard.services.store import DependencyStore

logger = get_logger(__name__)


def build_graph(edges: Iterable[tuple[int, int]]) -> nx.DiGraph:
    """
    Build a DiGraph where an edge ``a -> b`` means "a depends on b".
    """
    graph = nx.DiGraph()
    graph.add_edges_from(edges)
    return graph


async def build_dependency_graph(session: AsyncSession) -> nx.DiGraph:
    """Load every stored dependency edge into a DiGraph."""
    return build_graph(await DependencyStore(session).all_edges())


def find_cycle(graph: nx.DiGraph) -> list[tuple[int, int]] | None:
    """Return the edges of one cycle in ``graph``, or None if it is acyclic."""
    try:
        return [(u, v) for u, v in nx.find_cycle(graph)]
    except nx.NetworkXNoCycle:
        return None


async def audit_dependency_graph(session: AsyncSession) -> list[tuple[int, int]] | None:
    """
    Check the stored edge set for a cycle and log the result.

    The write path never admits a cycle; a hit here means rows were written
    around the engine (manual SQL, a restore) and needs attention.
    """
    graph = await build_dependency_graph(session)
    cycle = find_cycle(graph)
    if cycle:
        logger.error(f"Dependency graph contains a cycle: {cycle}")
    else:
        logger.info(
            f"Dependency graph audit passed: {graph.number_of_nodes()} tasks, "
            f"{graph.number_of_edges()} edges, acyclic"
        )
    return cycle
