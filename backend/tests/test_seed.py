"""
Seed script tests, run against the test database.
"""

import pytest
from sqlalchemy import func
from sqlmodel import select

from scripts import seed
from taskboard.models import User


class TestCreateUsers:

    @pytest.mark.asyncio
    async def test_seeding_twice_reuses_accounts(self, session_maker, monkeypatch):
        monkeypatch.setattr(seed, "async_session_maker", session_maker)

        managers, users = await seed.create_users()
        again_managers, again_users = await seed.create_users()

        assert len(managers) == 2
        assert len(users) == 4
        assert [m.id for m in again_managers] == [m.id for m in managers]
        assert [u.id for u in again_users] == [u.id for u in users]

        async with session_maker() as session:
            count = (await session.execute(select(func.count()).select_from(User))).scalar_one()
        assert count == len(seed.SEED_USERS)
