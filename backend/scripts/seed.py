#!/usr/bin/env python3
"""
Seed script for local development.

Creates the sample accounts (two managers, four users) and a layered task
graph whose dependencies are added through the dependency engine, so the
seeded data obeys the same invariants as API writes.

Users are matched to Firebase accounts by ``firebase_uid``; the seeded
uids are placeholders (``seed-<name>``) until those people sign in.

Usage:
    python -m scripts.seed [--tasks 60] [--clear] [--benchmark]

Options:
    --tasks N     Number of tasks to generate (default: 60)
    --clear       Clear existing data before seeding
    --benchmark   Time cycle checks against the seeded graph
"""

import argparse
import asyncio
import random
import time
from datetime import date, timedelta

from sqlalchemy import delete
from sqlmodel import select

from taskboard.database import async_session_maker, init_db
from taskboard.exceptions import CircularDependencyError, DuplicateDependencyError
from taskboard.models import Task, TaskDependency, TaskStatus, User, UserRole
from taskboard.services.cycle import would_create_cycle
from taskboard.services.dependencies import DependencyGraphEngine
from taskboard.services.graph import audit_dependency_graph, build_dependency_graph
from taskboard.services.store import DependencyStore

SEED_USERS = [
    ("John Manager", "manager@taskapp.com", UserRole.MANAGER),
    ("Sarah Admin", "admin@taskapp.com", UserRole.MANAGER),
    ("Alice Developer", "alice@taskapp.com", UserRole.USER),
    ("Bob Developer", "bob@taskapp.com", UserRole.USER),
    ("Charlie Tester", "charlie@taskapp.com", UserRole.USER),
    ("Diana Designer", "diana@taskapp.com", UserRole.USER),
]


async def clear_data():
    """Clear all existing data."""
    print("Clearing existing data...")
    async with async_session_maker() as session:
        await session.execute(delete(TaskDependency))
        await session.execute(delete(Task))
        await session.execute(delete(User))
        await session.commit()
    print("Data cleared.")


async def create_users() -> tuple[list[User], list[User]]:
    """
    Create the sample accounts; returns (managers, users).

    Accounts already present (matched by ``firebase_uid``) are reused, so
    seeding again without ``--clear`` does not hit the unique constraint.
    """
    async with async_session_maker() as session:
        uids = [f"seed-{email.split('@')[0]}" for _, email, _ in SEED_USERS]
        result = await session.execute(select(User).where(User.firebase_uid.in_(uids)))
        existing = {u.firebase_uid: u for u in result.scalars().all()}

        accounts = []
        for uid, (name, email, role) in zip(uids, SEED_USERS):
            account = existing.get(uid)
            if account is None:
                account = User(firebase_uid=uid, email=email, name=name, role=role.value)
                session.add(account)
            accounts.append(account)

        if len(existing) < len(accounts):
            await session.commit()
            for account in accounts:
                await session.refresh(account)
        print(f"Reused {len(existing)} existing accounts")

    managers = [a for a in accounts if a.role == UserRole.MANAGER.value]
    users = [a for a in accounts if a.role == UserRole.USER.value]
    return managers, users


async def create_tasks(num_tasks: int, managers: list[User], users: list[User]) -> list[list[Task]]:
    """
    Create tasks in waves (levels).

    Returns the tasks grouped by wave so dependencies can point backwards.
    """
    num_waves = max(3, num_tasks // 10)  # ~10 tasks per wave
    tasks_per_wave = max(1, num_tasks // num_waves)
    waves: list[list[Task]] = []

    print(f"Generating {num_tasks} tasks in {num_waves} waves...")

    async with async_session_maker() as session:
        created = 0
        for wave in range(num_waves):
            wave_size = tasks_per_wave if wave < num_waves - 1 else num_tasks - created
            wave_tasks = [
                Task(
                    title=f"Task W{wave:02d}-{i:03d}",
                    description=f"Wave {wave}, Task {i}",
                    due_date=date.today() + timedelta(days=7 * (wave + 1)),
                    # Earlier waves are further along
                    status=TaskStatus.COMPLETED.value if wave == 0 else TaskStatus.PENDING.value,
                    assigned_to=random.choice(users).id if random.random() < 0.8 else None,
                    created_by=random.choice(managers).id,
                )
                for i in range(wave_size)
            ]
            created += wave_size
            session.add_all(wave_tasks)
            waves.append(wave_tasks)

        await session.commit()
        for wave_tasks in waves:
            for task in wave_tasks:
                await session.refresh(task)

    return waves


async def create_dependencies(waves: list[list[Task]], manager: User) -> int:
    """Each task after the first wave depends on 1-3 tasks from the last three waves."""
    added = 0
    async with async_session_maker() as session:
        engine = DependencyGraphEngine(session, actor=manager)
        for wave in range(1, len(waves)):
            available_waves = list(range(max(0, wave - 3), wave))
            for task in waves[wave]:
                for _ in range(random.randint(1, 3)):
                    dep_task = random.choice(waves[random.choice(available_waves)])
                    try:
                        await engine.add_dependency(task.id, dep_task.id)
                        added += 1
                    except (DuplicateDependencyError, CircularDependencyError):
                        continue
    print(f"Added {added} dependencies.")
    return added


async def run_benchmark(samples: int = 200):
    """Time cycle checks for random proposed edges against the seeded graph."""
    async with async_session_maker() as session:
        store = DependencyStore(session)
        graph = await build_dependency_graph(session)
        nodes = list(graph.nodes)
        if len(nodes) < 2:
            print("Not enough tasks to benchmark.")
            return

        cycles = 0
        start_time = time.time()
        for _ in range(samples):
            task_id, depends_on = random.sample(nodes, 2)
            if await would_create_cycle(store, task_id, depends_on):
                cycles += 1
        elapsed = time.time() - start_time

    print(f"\n=== Benchmark: {samples} cycle checks ===")
    print(f"Total: {elapsed * 1000:.2f}ms ({elapsed * 1000 / samples:.2f}ms per check)")
    print(f"Proposals that would close a cycle: {cycles}")


async def get_stats():
    """Print statistics about the seeded graph."""
    async with async_session_maker() as session:
        graph = await build_dependency_graph(session)
        await audit_dependency_graph(session)

    num_edges = graph.number_of_edges()
    num_nodes = graph.number_of_nodes()
    roots = sum(1 for n in graph.nodes if graph.out_degree(n) == 0)
    leaves = sum(1 for n in graph.nodes if graph.in_degree(n) == 0)

    print("\n=== Graph Statistics ===")
    print(f"Tasks in graph: {num_nodes}")
    print(f"Dependencies:   {num_edges}")
    print(f"Root tasks:     {roots} (no dependencies)")
    print(f"Leaf tasks:     {leaves} (no dependents)")
    print(f"Avg deps/task:  {num_edges / num_nodes if num_nodes else 0:.2f}")


async def main():
    parser = argparse.ArgumentParser(description="Seed the database with sample users and tasks")
    parser.add_argument("--tasks", type=int, default=60, help="Number of tasks to create")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--benchmark", action="store_true", help="Time cycle checks after seeding")

    args = parser.parse_args()

    print("=== Taskboard Seed Script ===")

    await init_db()

    if args.clear:
        await clear_data()

    managers, users = await create_users()
    print(f"Created {len(managers)} managers and {len(users)} users")

    start_time = time.time()
    waves = await create_tasks(args.tasks, managers, users)
    await create_dependencies(waves, managers[0])
    print(f"Seed time: {time.time() - start_time:.2f}s")

    await get_stats()

    if args.benchmark:
        await run_benchmark()

    print("\n=== Seeding Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
