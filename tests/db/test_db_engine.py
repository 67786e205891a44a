"""
Tests for engine and session lifecycle helpers.
"""

import pytest
from sqlalchemy import text

from crudcore.config import TestingSettings
from crudcore.db import engine as db_engine
from crudcore.db import get_db, init_db, shutdown_db
from crudcore.errors import ConfigurationError


@pytest.mark.asyncio
async def test_init_db_requires_database_url():
    settings = TestingSettings(DATABASE_URL=None)
    with pytest.raises(ConfigurationError):
        await init_db(settings)


@pytest.mark.asyncio
async def test_get_db_requires_init():
    await shutdown_db()
    with pytest.raises(ConfigurationError):
        async for _ in get_db():
            pass


@pytest.mark.asyncio
async def test_session_lifecycle():
    await init_db(TestingSettings())
    assert db_engine.engine is not None
    assert db_engine.SessionLocal is not None

    async for session in get_db():
        result = await session.execute(text("SELECT 1"))
        assert result.scalar_one() == 1

    await shutdown_db()
    assert db_engine.engine is None
    assert db_engine.SessionLocal is None


@pytest.mark.asyncio
async def test_get_db_rolls_back_on_error():
    await init_db(TestingSettings())
    generator = get_db()
    session = await generator.__anext__()
    with pytest.raises(RuntimeError):
        await generator.athrow(RuntimeError("handler failed"))
    assert not session.in_transaction()
    await shutdown_db()
