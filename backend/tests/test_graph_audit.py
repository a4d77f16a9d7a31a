"""
Tests for the NetworkX whole-graph audit.
"""

import pytest

from taskboard.models import TaskDependency
from taskboard.services.dependencies import DependencyGraphEngine
from taskboard.services.graph import audit_dependency_graph, build_graph, find_cycle


class TestFindCycle:

    def test_acyclic(self):
        graph = build_graph([(1, 2), (2, 3), (1, 3)])
        assert find_cycle(graph) is None

    def test_cycle_edges_returned(self):
        graph = build_graph([(1, 2), (2, 3), (3, 1), (4, 1)])
        cycle = find_cycle(graph)
        assert cycle is not None
        assert set(cycle) == {(1, 2), (2, 3), (3, 1)}


class TestAudit:

    @pytest.mark.asyncio
    async def test_graph_built_through_engine_passes(self, test_session, make_task):
        t1, t2, t3 = await make_task(), await make_task(), await make_task()
        engine = DependencyGraphEngine(test_session)
        await engine.add_dependency(t1, t2)
        await engine.add_dependency(t2, t3)

        assert await audit_dependency_graph(test_session) is None

    @pytest.mark.asyncio
    async def test_rows_written_around_engine_are_flagged(self, session_maker, make_task):
        t1, t2 = await make_task(), await make_task()
        async with session_maker() as session:
            session.add_all([
                TaskDependency(task_id=t1, depends_on_task_id=t2),
                TaskDependency(task_id=t2, depends_on_task_id=t1),
            ])
            await session.commit()

        async with session_maker() as session:
            cycle = await audit_dependency_graph(session)

        assert cycle is not None
        assert set(cycle) == {(t1, t2), (t2, t1)}
